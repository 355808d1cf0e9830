from __future__ import annotations

import posixpath
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}

_BINARY_EXTS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".svg",
    ".ico",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
    ".tgz",
    ".mp4",
    ".mp3",
    ".woff",
    ".woff2",
    ".ttf",
    ".otf",
    ".eot",
}


def _split(raw_url: str, base: str | None = None) -> SplitResult | None:
    try:
        joined = urljoin(base, raw_url.strip()) if base else raw_url.strip()
        parsed = urlsplit(joined)
        port = parsed.port
    except ValueError:
        return None

    scheme = (parsed.scheme or "").lower()
    if scheme not in _DEFAULT_PORTS:
        return None
    host = (parsed.hostname or "").lower()
    if not host:
        return None

    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"

    return parsed._replace(scheme=scheme, netloc=netloc)


def normalize_url(raw_url: str, base: str | None = None) -> str | None:
    """Normalize a URL for crawl de-duplication.

    - Resolves ``raw_url`` against ``base`` when given.
    - Rejects anything that is not http(s); returns None on parse failure.
    - Lowercases scheme + hostname and drops default ports.
    - Strips fragment and query.
    - Strips one trailing slash, except for the root path.
    """

    parsed = _split(raw_url, base)
    if parsed is None:
        return None

    path = parsed.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    return urlunsplit((parsed.scheme, parsed.netloc, path, "", ""))


def origin_of(url: str) -> str:
    parsed = _split(url)
    if parsed is None:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def path_of(url: str) -> str:
    try:
        return urlsplit(url).path or "/"
    except ValueError:
        return "/"


def scope_path(start_url: str) -> str:
    """Path subtree a crawl started at ``start_url`` may not leave.

    A trailing segment that looks like a file (contains a dot) scopes the
    crawl to its parent directory.
    """

    trimmed = path_of(start_url).rstrip("/")
    if not trimmed:
        return "/"
    last = trimmed.split("/")[-1]
    if "." not in last:
        return trimmed
    parent = trimmed[: trimmed.rfind("/")]
    return parent or "/"


def in_scope(candidate: str, origin: str, scope: str) -> bool:
    if origin_of(candidate) != origin:
        return False
    if scope == "/":
        return True
    path = path_of(candidate)
    return path == scope or path.startswith(scope + "/")


def has_binary_extension(url: str) -> bool:
    ext = posixpath.splitext(path_of(url))[1].lower()
    return ext in _BINARY_EXTS


def is_markdown_variant_path(path: str) -> bool:
    return path == "/.md" or path.endswith("/.md") or path.endswith(".md")


def _with_path(url: str, path: str) -> str:
    parsed = urlsplit(url)
    return urlunsplit((parsed.scheme, parsed.netloc, path, "", ""))


def dot_md_url(canonical_url: str) -> str:
    path = path_of(canonical_url)
    return _with_path(canonical_url, "/.md" if path == "/" else f"{path}.md")


def slash_dot_md_url(canonical_url: str) -> str:
    path = path_of(canonical_url)
    return _with_path(canonical_url, "/.md" if path == "/" else f"{path}/.md")


def canonicalize_markdown_variant_url(url: str) -> str:
    """Map a markdown source URL back to the page it describes.

    ``/guide/.md`` and ``/guide.md`` become ``/guide``; ``/.md`` becomes
    ``/``. A stem that still contains a dot (``notes.v1.md``) is kept.
    """

    path = path_of(url)
    if path == "/.md":
        return _with_path(url, "/")

    if path.endswith("/.md"):
        stripped = path[: -len("/.md")] or "/"
        return _with_path(url, stripped)

    if path.endswith(".md"):
        head, _, last = path.rpartition("/")
        stem = last[: -len(".md")]
        if stem and "." not in stem:
            return _with_path(url, f"{head}/{stem}")

    return url
