from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

MAX_FETCH_BYTES = 2 * 1024 * 1024

_HTML_SIGNATURES = ("<!doctype", "<html", "<head", "<body")

_HTML_MEDIA_TYPES = {"text/html", "application/xhtml+xml"}
_XML_MEDIA_TYPES = {"application/xml", "text/xml"}


class ContentKind(str, Enum):
    HTML = "html"
    MARKDOWN = "markdown"
    TEXT = "text"


def looks_like_html(text: str) -> bool:
    """True when the body begins like an HTML document."""

    head = text.lstrip()[:400].lower()
    if not head.startswith("<"):
        return False
    return any(sig in head for sig in _HTML_SIGNATURES)


def is_html_media_type(content_type: str) -> bool:
    return content_type in _HTML_MEDIA_TYPES


def is_text_media_type(content_type: str) -> bool:
    # A missing Content-Type is treated as text.
    return not content_type or content_type.startswith("text/")


def accepts_as_markdown_variant(content_type: str, body: str) -> bool:
    """Markdown variants must be non-HTML text with a non-HTML body."""

    if not is_text_media_type(content_type) or is_html_media_type(content_type):
        return False
    return not looks_like_html(body)


def accepts_as_canonical(content_type: str) -> bool:
    return (
        is_html_media_type(content_type)
        or content_type in _XML_MEDIA_TYPES
        or is_text_media_type(content_type)
    )


def sniff_canonical_kind(content_type: str, *, body: str, markdown_path: bool) -> ContentKind:
    """Classify an accepted canonical response.

    Rules:
    - ``text/markdown`` is markdown.
    - Text at a markdown variant path that does not look like HTML is markdown.
    - HTML/XHTML/XML is handed to the HTML extractor.
    - Any other text is kept as plain text.
    """

    if content_type in {"text/markdown", "text/x-markdown"}:
        return ContentKind.MARKDOWN
    is_html = is_html_media_type(content_type) or content_type in _XML_MEDIA_TYPES
    if (
        not is_html
        and is_text_media_type(content_type)
        and markdown_path
        and not looks_like_html(body)
    ):
        return ContentKind.MARKDOWN
    if is_html:
        return ContentKind.HTML
    if not content_type and looks_like_html(body):
        return ContentKind.HTML
    return ContentKind.TEXT


@dataclass(frozen=True)
class PageMeta:
    noindex: bool = False
    nofollow: bool = False


@dataclass(frozen=True)
class FetchedPage:
    """One fetched + extracted page, before the scheduler accepts it.

    ``markdown`` is the wrapped snapshot text (title + source line + body);
    ``body`` is the unwrapped markdown body.
    """

    title: str
    markdown: str
    body: str
    headings: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    meta: PageMeta = PageMeta()
    quality: float = 1.0
    is_shell: bool = False
    kind: ContentKind = ContentKind.HTML
