from __future__ import annotations

import logging
from dataclasses import dataclass

from tqdm import tqdm

from .errors import CrawlExhaustedError, ValidationError
from .fetcher import ContentFetcher
from .http_client import HttpClient
from .render import Renderer, needs_render, render_budget, render_fallback
from .robots import fetch_robots
from .sitemap import fetch_sitemap
from .snapshot import utc_iso
from .state import CrawledPage, CrawlState
from .urls import normalize_url, origin_of, scope_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrawlTarget:
    start_url: str
    max_pages: int = 200
    max_depth: int = 3
    ttl_hours: int = 24


@dataclass(frozen=True)
class CrawlResult:
    pages: list[CrawledPage]
    scope_path: str


class Crawler:
    """Breadth-first, strictly sequential website crawler."""

    def __init__(
        self,
        *,
        http: HttpClient,
        renderer: Renderer | None = None,
        fetcher: ContentFetcher | None = None,
        show_progress: bool = False,
    ) -> None:
        self.http = http
        self.renderer = renderer
        self.fetcher = fetcher or ContentFetcher(http)
        self.show_progress = show_progress

    def _seed(self, target: CrawlTarget) -> CrawlState:
        start = normalize_url(target.start_url)
        if start is None:
            raise ValidationError(
                "Failed to normalize website URL",
                hint="Provide a valid absolute HTTPS URL for website resources.",
            )

        origin = origin_of(start)
        state = CrawlState(
            origin=origin,
            scope_path=scope_path(start),
            max_depth=target.max_depth,
            robots=fetch_robots(self.http, origin),
            renders_remaining=render_budget(target.max_pages),
        )

        state.enqueue(start, 0)
        for raw_url in fetch_sitemap(self.http, origin):
            url = normalize_url(raw_url, start)
            if url is not None:
                state.enqueue(url, 1)
        return state

    def crawl(self, target: CrawlTarget) -> CrawlResult:
        state = self._seed(target)
        logger.info(
            "crawling %s (scope %s, %d queued)",
            target.start_url,
            state.scope_path,
            len(state.queue),
        )

        with tqdm(
            total=target.max_pages,
            desc="crawl",
            unit="page",
            disable=not self.show_progress,
        ) as progress:
            while state.queue and len(state.pages) < target.max_pages:
                item = state.pop()
                if item is None:
                    break

                page = self.fetcher.fetch_page(item.url, state.negotiation)
                if page is None:
                    continue

                if (
                    self.renderer is not None
                    and state.renders_remaining > 0
                    and needs_render(page)
                ):
                    state.renders_remaining -= 1
                    page = render_fallback(self.renderer, page, canonical_url=item.url)

                if not page.meta.nofollow and item.depth < target.max_depth:
                    for link in page.links:
                        state.enqueue(link, item.depth + 1)

                if page.meta.noindex:
                    logger.debug("skipping noindex page %s", item.url)
                    continue

                state.pages.append(
                    CrawledPage(
                        url=item.url,
                        title=page.title,
                        markdown=page.markdown,
                        headings=page.headings,
                        fetched_at=utc_iso(),
                    )
                )
                progress.update(1)

        if not state.pages:
            raise CrawlExhaustedError(
                f"No indexable pages found for {target.start_url}",
                hint=(
                    "The website may block crawling via robots.txt/meta tags, "
                    "or no HTML pages were reachable from the provided URL."
                ),
            )

        return CrawlResult(pages=list(state.pages), scope_path=state.scope_path)
