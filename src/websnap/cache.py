from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable

from .config import WebsiteResourceConfig
from .crawl import Crawler, CrawlTarget
from .errors import (
    CommonHints,
    CrawlFailedError,
    SnapshotFilesystemError,
)
from .snapshot import (
    WebsiteManifest,
    has_snapshot_files,
    read_manifest,
    utc_iso,
    write_snapshot,
)

logger = logging.getLogger(__name__)


class SnapshotStatus(str, Enum):
    FRESH = "fresh"
    CRAWLED = "crawled"
    STALE_FALLBACK = "stale_fallback"


@dataclass(frozen=True)
class LoadedSnapshot:
    path: Path
    status: SnapshotStatus
    manifest: WebsiteManifest


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_manifest_fresh(
    manifest: WebsiteManifest, ttl_hours: float, *, now: datetime | None = None
) -> bool:
    crawled_at = manifest.crawled_at_datetime()
    if crawled_at is None:
        return False
    now = now or utcnow()
    return now - crawled_at < timedelta(hours=ttl_hours)


class SnapshotCache:
    """Decides between a cached snapshot, a fresh crawl, or a stale fallback.

    A crawl always writes into a private temp directory that is renamed over
    the final directory only after the snapshot is complete, so readers never
    observe a partial snapshot.
    """

    def __init__(
        self,
        resources_dir: Path,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.resources_dir = resources_dir
        self._clock = clock

    def path_for(self, config: WebsiteResourceConfig) -> Path:
        return self.resources_dir / config.key

    def ensure(self, config: WebsiteResourceConfig, crawler: Crawler) -> LoadedSnapshot:
        try:
            self.resources_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SnapshotFilesystemError(
                "Failed to create resources directory",
                hint=CommonHints.CHECK_PERMISSIONS,
            ) from e

        local_path = self.path_for(config)
        existing = read_manifest(local_path)
        has_existing = existing is not None and has_snapshot_files(local_path)

        if (
            existing is not None
            and has_existing
            and is_manifest_fresh(existing, config.ttl_hours, now=self._clock())
        ):
            logger.info(
                "using cached snapshot for %s (%d pages)", config.name, existing.page_count
            )
            return LoadedSnapshot(local_path, SnapshotStatus.FRESH, existing)

        temp_path = self.resources_dir / f"{config.key}.tmp-{uuid.uuid4().hex}"
        try:
            manifest = self._build(config, crawler, temp_path)
        except Exception as e:
            shutil.rmtree(temp_path, ignore_errors=True)
            if existing is not None and has_existing:
                logger.warning(
                    "re-crawl of %s failed, serving stale snapshot from %s: %s",
                    config.name,
                    existing.crawled_at,
                    e,
                )
                return LoadedSnapshot(local_path, SnapshotStatus.STALE_FALLBACK, existing)
            if isinstance(e, SnapshotFilesystemError):
                raise
            raise CrawlFailedError(
                f'Failed to crawl website resource "{config.name}"',
                hint=(
                    f"{CommonHints.CHECK_NETWORK} "
                    "Verify the URL is reachable and allows crawling."
                ),
            ) from e
        except BaseException:
            shutil.rmtree(temp_path, ignore_errors=True)
            raise

        self._commit(temp_path, local_path)
        logger.info(
            "crawled %s: %d pages (max_pages=%d, max_depth=%d)",
            config.name,
            manifest.page_count,
            config.max_pages,
            config.max_depth,
        )
        return LoadedSnapshot(local_path, SnapshotStatus.CRAWLED, manifest)

    def _build(
        self, config: WebsiteResourceConfig, crawler: Crawler, temp_path: Path
    ) -> WebsiteManifest:
        try:
            temp_path.mkdir(parents=True)
        except OSError as e:
            raise SnapshotFilesystemError(
                f"Failed to create {temp_path}",
                hint=CommonHints.CHECK_PERMISSIONS,
            ) from e

        result = crawler.crawl(
            CrawlTarget(
                start_url=config.url,
                max_pages=config.max_pages,
                max_depth=config.max_depth,
                ttl_hours=config.ttl_hours,
            )
        )
        return write_snapshot(
            temp_path,
            url=config.url,
            scope_path=result.scope_path,
            max_pages=config.max_pages,
            max_depth=config.max_depth,
            pages=result.pages,
            crawled_at=utc_iso(self._clock()),
        )

    def _commit(self, temp_path: Path, local_path: Path) -> None:
        try:
            if local_path.exists():
                shutil.rmtree(local_path)
            temp_path.rename(local_path)
        except OSError as e:
            shutil.rmtree(temp_path, ignore_errors=True)
            raise SnapshotFilesystemError(
                f"Failed to commit snapshot to {local_path}",
                hint=CommonHints.CHECK_PERMISSIONS,
            ) from e
