from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .content import ContentKind, FetchedPage
from .convert.html_to_md import extract_page
from .urls import origin_of

logger = logging.getLogger(__name__)

# Tunable heuristics for the headless-render fallback.
MAX_RENDERS_PER_CRAWL = 25
RENDER_MIN_QUALITY = 0.18
RENDER_QUALITY_DELTA = 0.02
RENDER_BODY_DELTA_CHARS = 20

RENDER_TIMEOUT_MS = 15_000


@dataclass(frozen=True)
class RenderResult:
    html: str
    final_url: str


class Renderer(Protocol):
    def render(self, url: str) -> RenderResult: ...

    def close(self) -> None: ...


def render_budget(max_pages: int) -> int:
    return max(0, min(MAX_RENDERS_PER_CRAWL, max_pages))


def needs_render(page: FetchedPage) -> bool:
    """Only HTML extractions that look empty or JS-driven are re-rendered."""

    if page.kind is not ContentKind.HTML or page.meta.noindex:
        return False
    return page.is_shell or page.quality < RENDER_MIN_QUALITY


def is_improvement(original: FetchedPage, rendered: FetchedPage) -> bool:
    if rendered.is_shell:
        return False
    longer = len(rendered.body) > len(original.body) + RENDER_BODY_DELTA_CHARS
    better = rendered.quality > original.quality + RENDER_QUALITY_DELTA
    return longer or better


def render_fallback(
    renderer: Renderer | None,
    page: FetchedPage,
    *,
    canonical_url: str,
) -> FetchedPage:
    """Re-extract ``canonical_url`` from a headless render.

    Returns the rendered extraction only when it stayed on the same origin
    and is a real improvement; otherwise ``page`` unchanged.
    """

    if renderer is None:
        return page

    try:
        result = renderer.render(canonical_url)
    except Exception as e:
        logger.warning("render failed for %s: %s", canonical_url, e)
        return page

    if origin_of(result.final_url) != origin_of(canonical_url):
        logger.warning(
            "render of %s ended off-origin at %s; keeping fetched content",
            canonical_url,
            result.final_url,
        )
        return page

    try:
        rendered = extract_page(result.html, page_url=canonical_url)
    except Exception as e:
        logger.warning("extraction of rendered %s failed: %r", canonical_url, e)
        return page

    if not is_improvement(page, rendered):
        logger.debug("render of %s did not improve extraction", canonical_url)
        return page

    logger.debug(
        "render improved %s: quality %.2f -> %.2f",
        canonical_url,
        page.quality,
        rendered.quality,
    )
    return rendered


class PlaywrightRenderer:
    """Headless Chromium renderer.

    One browser page is reused for every render, so renders are serialized.
    Images, fonts and media are not downloaded.
    """

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        timeout_ms: int = RENDER_TIMEOUT_MS,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self._playwright: Any | None = None
        self._browser: Any | None = None
        self._page: Any | None = None

    def _ensure_page(self) -> Any:
        if self._page is not None:
            return self._page

        try:
            from playwright.sync_api import sync_playwright
        except ImportError as e:
            raise RuntimeError(
                "Playwright is not installed; install websnap[render] and run "
                "`playwright install chromium`."
            ) from e

        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=True)
        context = self._browser.new_context(user_agent=self.user_agent)
        page = context.new_page()
        page.route(
            "**/*",
            lambda route: (
                route.abort()
                if route.request.resource_type in {"image", "font", "media"}
                else route.continue_()
            ),
        )
        self._page = page
        return page

    def render(self, url: str) -> RenderResult:
        page = self._ensure_page()
        page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
        return RenderResult(html=page.content(), final_url=page.url)

    def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._page = None
        self._browser = None
        self._playwright = None
        if browser is not None:
            browser.close()
        if playwright is not None:
            playwright.stop()
