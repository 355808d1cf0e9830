"""websnap core library.

This package turns a public website into a local, searchable snapshot:
markdown pages under ``pages/``, an ``_index.jsonl`` listing, and a manifest
that doubles as the cache freshness witness.

Repo rules:
- Crawls are polite: robots.txt is honored and fetches are sequential.
- A snapshot directory is either complete or absent; never partial.
"""

from __future__ import annotations

from .config import WebsiteResourceConfig
from .errors import (
    CrawlExhaustedError,
    CrawlFailedError,
    SnapshotFilesystemError,
    ValidationError,
    WebsnapError,
)
from .resource import WebsiteResource, load_website_resource

__all__ = [
    "__version__",
    "CrawlExhaustedError",
    "CrawlFailedError",
    "SnapshotFilesystemError",
    "ValidationError",
    "WebsiteResource",
    "WebsiteResourceConfig",
    "WebsnapError",
    "load_website_resource",
]

__version__ = "0.1.0"
