from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .snapshot import INDEX_FILE, MANIFEST_FILE, ManifestPage, read_manifest


@dataclass(frozen=True)
class SnapshotInspection:
    snapshot_dir: Path
    url: str
    crawled_at: str
    page_count: int
    index_lines: int
    index_invalid_json: int
    index_matches_manifest: bool
    missing_files: int
    missing_paths_sample: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_dir": str(self.snapshot_dir),
            "url": self.url,
            "crawled_at": self.crawled_at,
            "page_count": self.page_count,
            "index_lines": self.index_lines,
            "index_invalid_json": self.index_invalid_json,
            "index_matches_manifest": self.index_matches_manifest,
            "missing_files": self.missing_files,
            "missing_paths_sample": list(self.missing_paths_sample),
        }


def _read_index(index_path: Path) -> tuple[list[ManifestPage], int]:
    entries: list[ManifestPage] = []
    invalid = 0
    if not index_path.exists():
        return entries, invalid

    with index_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                invalid += 1
                continue
            if not isinstance(obj, dict):
                invalid += 1
                continue
            entries.append(ManifestPage.from_dict(obj))
    return entries, invalid


def inspect_snapshot(
    *,
    snapshot_dir: Path,
    max_missing_paths_sample: int = 25,
) -> SnapshotInspection:
    """Summarize a snapshot directory and check that it is self-consistent."""

    snapshot_dir = snapshot_dir.resolve()
    manifest = read_manifest(snapshot_dir)
    if manifest is None:
        raise FileNotFoundError(f"Missing or invalid {MANIFEST_FILE} in: {snapshot_dir}")

    index_entries, invalid = _read_index(snapshot_dir / INDEX_FILE)

    missing_sample: list[str] = []
    missing = 0
    for page in manifest.pages:
        if (snapshot_dir / page.file_path).is_file():
            continue
        missing += 1
        if len(missing_sample) < max_missing_paths_sample:
            missing_sample.append(page.file_path)

    return SnapshotInspection(
        snapshot_dir=snapshot_dir,
        url=manifest.url,
        crawled_at=manifest.crawled_at,
        page_count=manifest.page_count,
        index_lines=len(index_entries),
        index_invalid_json=invalid,
        index_matches_manifest=index_entries == manifest.pages,
        missing_files=missing,
        missing_paths_sample=missing_sample,
    )
