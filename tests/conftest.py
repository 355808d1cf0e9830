from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from websnap.http_client import HttpClient

HTML = "text/html; charset=utf-8"
MARKDOWN = "text/markdown; charset=utf-8"
PLAIN = "text/plain; charset=utf-8"


@dataclass
class Route:
    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


def make_response(url: str, route: Route) -> requests.Response:
    resp = requests.Response()
    resp.status_code = route.status
    resp.headers = CaseInsensitiveDict(route.headers)
    resp._content = route.body
    resp._content_consumed = True
    resp.url = url
    resp.encoding = None
    return resp


class FakeSession:
    """Stands in for ``requests.Session``; unknown URLs answer 404.

    Several routes registered for one URL are served in order, the last one
    repeating. With ``offline`` set every request raises ConnectionError.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Route | Exception]] = {}
        self.calls: list[str] = []
        self.request_headers: list[dict[str, str]] = []
        self.offline = False

    def add(
        self,
        url: str,
        body: str | bytes = "",
        *,
        status: int = 200,
        content_type: str | None = HTML,
        headers: dict[str, str] | None = None,
    ) -> None:
        merged = dict(headers or {})
        if content_type is not None:
            merged.setdefault("Content-Type", content_type)
        raw = body.encode("utf-8") if isinstance(body, str) else body
        self.routes.setdefault(url, []).append(Route(status=status, body=raw, headers=merged))

    def redirect(self, url: str, location: str, *, status: int = 302) -> None:
        self.add(url, status=status, content_type=None, headers={"Location": location})

    def fail(self, url: str, error: Exception | None = None) -> None:
        self.routes.setdefault(url, []).append(error or requests.ConnectionError("boom"))

    def get(
        self,
        url: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        allow_redirects: bool = True,
        stream: bool = False,
    ) -> requests.Response:
        self.calls.append(url)
        self.request_headers.append(dict(headers or {}))
        if self.offline:
            raise requests.ConnectionError(f"offline: {url}")

        queue = self.routes.get(url)
        if not queue:
            return make_response(url, Route(status=404, body=b"not found", headers={"Content-Type": PLAIN}))

        route = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(route, Exception):
            raise route
        return make_response(url, route)

    def close(self) -> None:
        pass


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def http(session: FakeSession) -> HttpClient:
    return HttpClient(session, max_retries=0)  # type: ignore[arg-type]


def html_page(title: str, body: str, *, head: str = "") -> str:
    return (
        "<!DOCTYPE html><html><head>"
        f"<title>{title}</title>{head}"
        f"</head><body>{body}</body></html>"
    )


def prose(words: int = 60) -> str:
    return " ".join(f"word{i}" for i in range(words))
