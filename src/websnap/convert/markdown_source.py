"""Handling for pages whose source is already markdown (or plain text)."""

from __future__ import annotations

import re

from ..content import ContentKind, FetchedPage
from ..urls import canonicalize_markdown_variant_url, normalize_url, path_of
from .html_to_md import MAX_HEADINGS, normalize_whitespace, quality_score, wrap_page_markdown

# [text](url "title"), excluding images: ![alt](url)
_INLINE_LINK_RE = re.compile(r"(?<!!)\[[^\]]*?\]\(([^)\s]+)(?:\s+[\"'][^\"']*[\"'])?\)")
_AUTOLINK_RE = re.compile(r"<(https?://[^>\s]+)>")
_REFERENCE_DEF_RE = re.compile(r"^\s*\[[^\]]+?\]:\s*(\S+)", re.MULTILINE)
_HEADING_RE = re.compile(r"^#{1,3}\s+(.+?)\s*$", re.MULTILINE)

_SKIPPED_LINK_SCHEMES = ("mailto:", "tel:", "javascript:")


def split_title(markdown: str) -> tuple[str, str]:
    """Split a leading ``# Title`` line off a markdown document.

    Returns ``("", text)`` when the first non-blank line is not an H1.
    """

    lines = markdown.replace("\r\n", "\n").split("\n")
    first = 0
    while first < len(lines) and not lines[first].strip():
        first += 1

    if first < len(lines) and lines[first].startswith("# "):
        title = lines[first][2:].strip() or "Untitled"
        rest = "\n".join(lines[first + 1 :]).lstrip("\n")
        return title, rest

    return "", "\n".join(lines).lstrip()


def extract_markdown_headings(markdown: str) -> list[str]:
    headings = [normalize_whitespace(m.group(1)) for m in _HEADING_RE.finditer(markdown)]
    return [h for h in headings if h][:MAX_HEADINGS]


def extract_links_from_markdown(markdown: str, *, page_url: str) -> list[str]:
    out: dict[str, None] = {}

    def _add(raw: str) -> None:
        raw = raw.strip()
        if not raw or raw.startswith("#"):
            return
        if raw.lower().startswith(_SKIPPED_LINK_SCHEMES):
            return
        normalized = normalize_url(raw, page_url)
        if normalized:
            out[canonicalize_markdown_variant_url(normalized)] = None

    for pattern in (_INLINE_LINK_RE, _AUTOLINK_RE, _REFERENCE_DEF_RE):
        for match in pattern.finditer(markdown):
            _add(match.group(1))

    return list(out)


def markdown_page(markdown: str, *, canonical_url: str) -> FetchedPage:
    title, body = split_title(markdown)
    title = title or path_of(canonical_url) or canonical_url
    return FetchedPage(
        title=title,
        markdown=wrap_page_markdown(title=title, source_url=canonical_url, body=body),
        body=body,
        headings=extract_markdown_headings(markdown),
        links=extract_links_from_markdown(markdown, page_url=canonical_url),
        quality=quality_score(len(normalize_whitespace(body)), 0),
        kind=ContentKind.MARKDOWN,
    )


def text_page(text: str, *, canonical_url: str) -> FetchedPage | None:
    normalized = normalize_whitespace(text)
    if not normalized:
        return None
    title = path_of(canonical_url) or canonical_url
    body = f"## Content\n\n{normalized}"
    return FetchedPage(
        title=title,
        markdown=wrap_page_markdown(title=title, source_url=canonical_url, body=body),
        body=body,
        quality=quality_score(len(normalized), 0),
        kind=ContentKind.TEXT,
    )
