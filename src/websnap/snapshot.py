from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from .errors import CommonHints, SnapshotFilesystemError
from .http_client import load_json
from .urls import path_of

if TYPE_CHECKING:
    from .state import CrawledPage

MANIFEST_FILE = ".btca-website-manifest.json"
INDEX_FILE = "_index.jsonl"
PAGES_DIR = "pages"
MANIFEST_VERSION = 1


def utc_iso(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sanitize_segment(segment: str) -> str:
    cleaned = re.sub(r"[^a-z0-9._-]+", "-", segment.lower()).strip("-")
    return cleaned or "index"


def page_url_to_file_path(page_url: str) -> str:
    """Snapshot-relative markdown path for a page URL.

    ``https://x/docs/Getting Started.html`` -> ``pages/docs/getting-started.md``
    """

    trimmed = path_of(page_url).rstrip("/")
    segments = [sanitize_segment(s) for s in trimmed.split("/") if s]
    if not segments:
        return f"{PAGES_DIR}/index.md"

    last = re.sub(r"\.(?:html|htm)$", "", segments[-1], flags=re.IGNORECASE)
    segments[-1] = last or "index"
    return f"{PAGES_DIR}/{'/'.join(segments)}.md"


@dataclass(frozen=True)
class ManifestPage:
    url: str
    title: str
    file_path: str
    fetched_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "filePath": self.file_path,
            "fetchedAt": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManifestPage:
        return cls(
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            file_path=str(data.get("filePath") or ""),
            fetched_at=str(data.get("fetchedAt") or ""),
        )


@dataclass(frozen=True)
class WebsiteManifest:
    url: str
    scope_path: str
    crawled_at: str
    max_pages: int
    max_depth: int
    pages: list[ManifestPage] = field(default_factory=list)
    version: int = MANIFEST_VERSION

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "url": self.url,
            "scopePath": self.scope_path,
            "crawledAt": self.crawled_at,
            "maxPages": self.max_pages,
            "maxDepth": self.max_depth,
            "pageCount": self.page_count,
            "pages": [p.to_dict() for p in self.pages],
        }

    @classmethod
    def from_dict(cls, data: Any) -> WebsiteManifest | None:
        """Parse a manifest; None when the shape is not a version 1 manifest."""

        if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
            return None
        for key in ("url", "scopePath", "crawledAt"):
            if not isinstance(data.get(key), str):
                return None
        for key in ("maxPages", "maxDepth", "pageCount"):
            value = data.get(key)
            if not isinstance(value, int) or isinstance(value, bool):
                return None
        pages = data.get("pages")
        if not isinstance(pages, list):
            return None

        return cls(
            url=data["url"],
            scope_path=data["scopePath"],
            crawled_at=data["crawledAt"],
            max_pages=data["maxPages"],
            max_depth=data["maxDepth"],
            pages=[ManifestPage.from_dict(p) for p in pages if isinstance(p, dict)],
        )

    def crawled_at_datetime(self) -> datetime | None:
        return parse_iso(self.crawled_at)


def read_manifest(snapshot_dir: Path) -> WebsiteManifest | None:
    data = load_json(snapshot_dir / MANIFEST_FILE)
    if data is None:
        return None
    return WebsiteManifest.from_dict(data)


def has_snapshot_files(snapshot_dir: Path) -> bool:
    return (snapshot_dir / PAGES_DIR).is_dir() and (snapshot_dir / INDEX_FILE).is_file()


def write_snapshot(
    target_dir: Path,
    *,
    url: str,
    scope_path: str,
    max_pages: int,
    max_depth: int,
    pages: Iterable[CrawledPage],
    crawled_at: str | None = None,
) -> WebsiteManifest:
    """Write page files, the JSONL index and the manifest into ``target_dir``.

    Pages sharing a sanitized path overwrite each other; the last one wins.
    """

    entries: list[ManifestPage] = []
    try:
        (target_dir / PAGES_DIR).mkdir(parents=True, exist_ok=True)

        for page in pages:
            file_path = page_url_to_file_path(page.url)
            abs_path = target_dir / file_path
            abs_path.parent.mkdir(parents=True, exist_ok=True)
            abs_path.write_text(page.markdown, encoding="utf-8", newline="\n")
            entries.append(
                ManifestPage(
                    url=page.url,
                    title=page.title,
                    file_path=file_path,
                    fetched_at=page.fetched_at,
                )
            )

        with (target_dir / INDEX_FILE).open("w", encoding="utf-8", newline="\n") as f:
            for entry in entries:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

        manifest = WebsiteManifest(
            url=url,
            scope_path=scope_path,
            crawled_at=crawled_at or utc_iso(),
            max_pages=max_pages,
            max_depth=max_depth,
            pages=entries,
        )
        (target_dir / MANIFEST_FILE).write_text(
            json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
            newline="\n",
        )
    except OSError as e:
        raise SnapshotFilesystemError(
            f"Failed to write snapshot into {target_dir}",
            hint=CommonHints.CHECK_PERMISSIONS,
        ) from e

    return manifest
