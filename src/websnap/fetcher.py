from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import requests

from .content import (
    MAX_FETCH_BYTES,
    ContentKind,
    FetchedPage,
    accepts_as_canonical,
    accepts_as_markdown_variant,
    sniff_canonical_kind,
)
from .convert.html_to_md import extract_page
from .convert.markdown_source import markdown_page, text_page
from .errors import FetchError
from .http_client import FetchResult, HttpClient
from .urls import (
    dot_md_url,
    is_markdown_variant_path,
    origin_of,
    path_of,
    slash_dot_md_url,
)

logger = logging.getLogger(__name__)

PAGE_TIMEOUT_S = 15

_HTML_ACCEPT = "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.1"
_MARKDOWN_ACCEPT = "text/markdown,text/plain;q=0.9,*/*;q=0.1"


class VariantSupport(Enum):
    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


class MarkdownVariant(str, Enum):
    DOT_MD = ".md"
    SLASH_DOT_MD = "/.md"

    def url_for(self, canonical_url: str) -> str:
        if self is MarkdownVariant.DOT_MD:
            return dot_md_url(canonical_url)
        return slash_dot_md_url(canonical_url)


@dataclass
class OriginSupport:
    dot_md: VariantSupport = VariantSupport.UNKNOWN
    slash_dot_md: VariantSupport = VariantSupport.UNKNOWN

    def get(self, variant: MarkdownVariant) -> VariantSupport:
        if variant is MarkdownVariant.DOT_MD:
            return self.dot_md
        return self.slash_dot_md

    def set(self, variant: MarkdownVariant, state: VariantSupport) -> None:
        if variant is MarkdownVariant.DOT_MD:
            self.dot_md = state
        else:
            self.slash_dot_md = state

    def attempt_order(self) -> list[MarkdownVariant]:
        """Known-supported variants first, then unprobed ones.

        Unsupported variants are never attempted; ``.md`` precedes ``/.md``
        within each group.
        """

        variants = list(MarkdownVariant)
        supported = [v for v in variants if self.get(v) is VariantSupport.SUPPORTED]
        unknown = [v for v in variants if self.get(v) is VariantSupport.UNKNOWN]
        return supported + unknown


@dataclass
class MarkdownNegotiation:
    """Per-origin markdown variant support, owned by a single crawl."""

    by_origin: dict[str, OriginSupport] = field(default_factory=dict)

    def support_for(self, origin: str) -> OriginSupport:
        return self.by_origin.setdefault(origin, OriginSupport())


class ContentFetcher:
    def __init__(
        self,
        http: HttpClient,
        *,
        timeout_s: float = PAGE_TIMEOUT_S,
        max_bytes: int = MAX_FETCH_BYTES,
    ) -> None:
        self.http = http
        self.timeout_s = timeout_s
        self.max_bytes = max_bytes

    def fetch_page(
        self, canonical_url: str, negotiation: MarkdownNegotiation
    ) -> FetchedPage | None:
        """Fetch one page, preferring a markdown source variant.

        Failures are logged and reported as None so the crawl can go on.
        """

        try:
            return self._fetch(canonical_url, negotiation)
        except (FetchError, requests.RequestException) as e:
            logger.warning("fetch failed for %s: %s", canonical_url, e)
            return None
        except Exception as e:
            logger.warning("extraction failed for %s: %r", canonical_url, e)
            return None

    def _fetch(self, canonical_url: str, negotiation: MarkdownNegotiation) -> FetchedPage | None:
        if not is_markdown_variant_path(path_of(canonical_url)):
            support = negotiation.support_for(origin_of(canonical_url))
            tried: set[str] = set()
            for variant in support.attempt_order():
                candidate = variant.url_for(canonical_url)
                if candidate in tried:
                    continue
                tried.add(candidate)

                page = self._try_markdown(candidate, canonical_url=canonical_url)
                if support.get(variant) is VariantSupport.UNKNOWN:
                    state = VariantSupport.SUPPORTED if page else VariantSupport.UNSUPPORTED
                    support.set(variant, state)
                    logger.debug(
                        "markdown variant %s for %s: %s",
                        variant.value,
                        origin_of(canonical_url),
                        state.value,
                    )
                if page is not None:
                    return page

        return self._try_canonical(canonical_url)

    def _get(self, url: str, *, accept: str) -> FetchResult:
        return self.http.get(
            url,
            timeout_s=self.timeout_s,
            headers={"Accept": accept},
            max_bytes=self.max_bytes,
            same_origin_redirects=True,
        )

    def _try_markdown(self, candidate_url: str, *, canonical_url: str) -> FetchedPage | None:
        try:
            res = self._get(candidate_url, accept=_MARKDOWN_ACCEPT)
        except (FetchError, requests.RequestException) as e:
            logger.debug("markdown variant %s rejected: %s", candidate_url, e)
            return None

        if not res.ok:
            return None
        body = res.text
        if not body.strip():
            return None
        if not accepts_as_markdown_variant(res.content_type, body):
            logger.debug("markdown variant %s is not markdown", candidate_url)
            return None
        return markdown_page(body, canonical_url=canonical_url)

    def _try_canonical(self, canonical_url: str) -> FetchedPage | None:
        res = self._get(canonical_url, accept=_HTML_ACCEPT)
        if not res.ok:
            logger.debug("%s returned %s", canonical_url, res.status_code)
            return None

        content_type = res.content_type
        if not accepts_as_canonical(content_type):
            logger.debug("%s has unsupported content type %r", canonical_url, content_type)
            return None

        body = res.text
        if not body.strip():
            return None

        kind = sniff_canonical_kind(
            content_type,
            body=body,
            markdown_path=is_markdown_variant_path(path_of(res.url)),
        )
        if kind is ContentKind.MARKDOWN:
            return markdown_page(body, canonical_url=canonical_url)
        if kind is ContentKind.TEXT:
            return text_page(body, canonical_url=canonical_url)
        return extract_page(body, page_url=canonical_url)
