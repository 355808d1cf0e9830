from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment, Tag
from markdownify import markdownify as md

from ..content import ContentKind, FetchedPage, PageMeta
from ..urls import normalize_url, path_of

MAX_MARKDOWN_CHARS = 120_000
TRUNCATION_MARKER = "[Content truncated due to size]"
MAX_HEADINGS = 100

# Content-root promotion guards.
MIN_ROOT_TEXT_CHARS = 200
MIN_ROOT_TEXT_SHARE = 0.25

# JS-shell detection.
SHELL_MAX_TEXT_CHARS = 200
SHELL_MIN_SCRIPTS = 6

_STRIP_TAGS = ["script", "style", "noscript", "template", "svg"]
_CHROME_TAGS = ["nav", "footer", "header", "aside"]
_SPA_ROOT_SELECTORS = (
    "#root",
    "#app",
    "#__next",
    "#__nuxt",
    "#svelte",
    "[data-reactroot]",
    "[ng-version]",
    "app-root",
)
_SKIPPED_LINK_SCHEMES = ("mailto:", "tel:", "javascript:")


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _attr_text(val: object) -> str:
    if isinstance(val, list):
        if not val:
            return ""
        return str(val[0])
    return str(val or "")


def _text_len(node: Tag | BeautifulSoup) -> int:
    return len(normalize_whitespace(node.get_text(" ")))


def quality_score(text_len: int, script_count: int) -> float:
    """Text volume, discounted by script weight. Always within [0, 1]."""

    volume = min(1.0, text_len / 1500)
    script_penalty = min(0.85, script_count / 40)
    return volume * (1 - script_penalty)


def is_shell_page(text_len: int, script_count: int, *, has_spa_root: bool) -> bool:
    return text_len < SHELL_MAX_TEXT_CHARS and (
        has_spa_root or script_count >= SHELL_MIN_SCRIPTS
    )


def wrap_page_markdown(*, title: str, source_url: str, body: str) -> str:
    wrapped = "\n".join([f"# {title}", "", f"Source: {source_url}", "", body])
    if len(wrapped) > MAX_MARKDOWN_CHARS:
        wrapped = wrapped[:MAX_MARKDOWN_CHARS] + f"\n\n{TRUNCATION_MARKER}"
    return wrapped


def parse_meta_robots(soup: BeautifulSoup) -> PageMeta:
    tokens: set[str] = set()
    for meta in soup.find_all("meta", attrs={"name": True}):
        name = _attr_text(meta.get("name")).strip().lower()
        if name not in {"robots", "googlebot"}:
            continue
        content = _attr_text(meta.get("content")).lower()
        tokens.update(t.strip() for t in content.split(",") if t.strip())
    return PageMeta(
        noindex="noindex" in tokens or "none" in tokens,
        nofollow="nofollow" in tokens or "none" in tokens,
    )


def extract_links_from_html(html: str | BeautifulSoup, *, page_url: str) -> list[str]:
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")

    effective_base = page_url
    base = soup.find("base")
    if base is not None:
        base_href = _attr_text(base.get("href")).strip()
        if base_href:
            effective_base = urljoin(page_url, base_href)

    out: dict[str, None] = {}
    for a in soup.select("a[href]"):
        href = _attr_text(a.get("href")).strip()
        if not href or href.startswith("#"):
            continue
        if href.lower().startswith(_SKIPPED_LINK_SCHEMES):
            continue
        abs_url = normalize_url(href, effective_base)
        if abs_url:
            out[abs_url] = None
    return list(out)


def extract_title(soup: BeautifulSoup, *, page_url: str) -> str:
    if soup.title is not None:
        title = normalize_whitespace(soup.title.get_text(" "))
        if title:
            return title
    h1 = soup.find("h1")
    if h1 is not None:
        title = normalize_whitespace(h1.get_text(" "))
        if title:
            return title
    return path_of(page_url) or page_url


def _has_spa_root(soup: BeautifulSoup) -> bool:
    return any(soup.select_one(sel) is not None for sel in _SPA_ROOT_SELECTORS)


def _pick_content_root(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    body = soup.body or soup
    body_len = _text_len(body)
    for tag_name in ("article", "main"):
        node = soup.find(tag_name)
        if node is None:
            continue
        node_len = _text_len(node)
        if node_len >= MIN_ROOT_TEXT_CHARS and node_len >= MIN_ROOT_TEXT_SHARE * body_len:
            return node
    return body


def _drop_leading_title_h1(root: Tag | BeautifulSoup, title: str) -> None:
    h1 = root.find("h1")
    if h1 is None:
        return
    if normalize_whitespace(h1.get_text(" ")).lower() != title.lower():
        return
    for s in root.find_all(string=True):
        if isinstance(s, Comment) or not s.strip():
            continue
        if any(parent is h1 for parent in s.parents):
            h1.decompose()
        return


def html_to_markdown(node: Tag | BeautifulSoup) -> str:
    markdown = md(str(node), heading_style="ATX", bullets="-", code_language="")
    markdown = re.sub(r"[ \t]+\n", "\n", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def extract_page(html: str, *, page_url: str) -> FetchedPage:
    """Convert one HTML document into a scored markdown page."""

    soup = BeautifulSoup(html, "html.parser")

    script_count = len(soup.find_all("script"))
    has_spa_root = _has_spa_root(soup)
    meta = parse_meta_robots(soup)

    for tag_name in _STRIP_TAGS:
        for t in soup.find_all(tag_name):
            t.decompose()

    title = extract_title(soup, page_url=page_url)
    links = extract_links_from_html(soup, page_url=page_url)
    headings = [
        text
        for text in (normalize_whitespace(h.get_text(" ")) for h in soup.find_all(["h1", "h2", "h3"]))
        if text
    ][:MAX_HEADINGS]

    root = _pick_content_root(soup)
    for tag_name in _CHROME_TAGS:
        for t in root.find_all(tag_name):
            t.decompose()
    _drop_leading_title_h1(root, title)

    text_len = _text_len(root)
    body = html_to_markdown(root)

    return FetchedPage(
        title=title,
        markdown=wrap_page_markdown(title=title, source_url=page_url, body=body),
        body=body,
        headings=headings,
        links=links,
        meta=meta,
        quality=quality_score(text_len, script_count),
        is_shell=is_shell_page(text_len, script_count, has_spa_root=has_spa_root),
        kind=ContentKind.HTML,
    )
