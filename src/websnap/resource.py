from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

import requests

from .cache import SnapshotCache, SnapshotStatus, utcnow
from .config import WebsiteResourceConfig, default_resources_dir
from .crawl import Crawler
from .http_client import HttpClient
from .render import Renderer


@dataclass(frozen=True)
class WebsiteResource:
    """A loaded website snapshot, ready for file-based search tools."""

    name: str
    fs_name: str
    path: Path
    status: SnapshotStatus
    page_count: int
    type: str = "website"


def load_website_resource(
    config: WebsiteResourceConfig,
    *,
    resources_dir: Path | None = None,
    http: HttpClient | None = None,
    renderer: Renderer | None = None,
    show_progress: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> WebsiteResource:
    """Return a complete snapshot for ``config``, crawling only when stale.

    Validation happens before any network call; numeric limits are clamped
    rather than rejected.
    """

    config.validate()
    config = config.clamped()
    resources_dir = resources_dir or default_resources_dir()

    session: requests.Session | None = None
    if http is None:
        session = requests.Session()
        http = HttpClient(session, max_retries=1)

    cache = SnapshotCache(resources_dir, clock=clock or utcnow)
    crawler = Crawler(http=http, renderer=renderer, show_progress=show_progress)
    try:
        loaded = cache.ensure(config, crawler)
    finally:
        if session is not None:
            session.close()

    return WebsiteResource(
        name=config.name,
        fs_name=config.key,
        path=loaded.path,
        status=loaded.status,
        page_count=loaded.manifest.page_count,
    )
