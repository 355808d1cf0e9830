from __future__ import annotations

import logging
import re

import requests

from .content import MAX_FETCH_BYTES
from .errors import FetchError
from .http_client import HttpClient

logger = logging.getLogger(__name__)

SITEMAP_TIMEOUT_S = 12

_LOC_RE = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)

_XML_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    # Last, so "&amp;lt;" decodes to "&lt;" rather than "<".
    ("&amp;", "&"),
)


def decode_xml_entities(value: str) -> str:
    for entity, char in _XML_ENTITIES:
        value = value.replace(entity, char)
    return value


def parse_sitemap(text: str) -> list[str]:
    """Return every ``<loc>`` value, in document order."""

    out: list[str] = []
    for match in _LOC_RE.finditer(text):
        loc = match.group(1).strip()
        if loc:
            out.append(decode_xml_entities(loc))
    return out


def fetch_sitemap(http: HttpClient, origin: str) -> list[str]:
    """Fetch ``{origin}/sitemap.xml``; failure yields no seed URLs."""

    sitemap_url = f"{origin}/sitemap.xml"
    try:
        res = http.get(sitemap_url, timeout_s=SITEMAP_TIMEOUT_S, max_bytes=MAX_FETCH_BYTES)
    except (FetchError, requests.RequestException) as e:
        logger.warning("sitemap.xml unavailable for %s: %s", origin, e)
        return []

    if not res.ok:
        logger.debug("sitemap.xml for %s returned %s", origin, res.status_code)
        return []
    return parse_sitemap(res.text)
