from __future__ import annotations

import codecs
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urljoin

import requests
from requests import exceptions as req_exc

from .errors import FetchError, RedirectError, ResponseTooLargeError
from .urls import origin_of

DEFAULT_USER_AGENT = "websnap-crawler/1.0"
DEFAULT_TIMEOUT_S = 15
MAX_REDIRECTS = 5
TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}

_CHUNK_SIZE = 64 * 1024


def _retry_after_seconds(headers: dict[str, str]) -> float | None:
    retry_after = headers.get("retry-after")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except ValueError:
        return None


def _charset(content_type: str) -> str:
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            name = value.strip().strip('"').strip("'")
            try:
                return codecs.lookup(name).name
            except LookupError:
                break
    return "utf-8"


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def content_type(self) -> str:
        """Media type only, lowercased; empty when the header is absent."""
        raw = self.headers.get("content-type", "")
        return raw.split(";", 1)[0].strip().lower()

    @property
    def text(self) -> str:
        charset = _charset(self.headers.get("content-type", ""))
        return self.body.decode(charset, errors="replace")


class HttpClient:
    def __init__(
        self,
        session: requests.Session,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_retries: int = 2,
        backoff_base_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s
        self._sleep = sleep

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def get(
        self,
        url: str,
        *,
        timeout_s: float | None = None,
        headers: dict[str, str] | None = None,
        max_bytes: int | None = None,
        same_origin_redirects: bool = False,
    ) -> FetchResult:
        """GET ``url``.

        With ``same_origin_redirects`` the client follows at most
        ``MAX_REDIRECTS`` hops itself and raises ``RedirectError`` when a hop
        leaves the origin. Otherwise redirects are left to requests.
        """

        if not same_origin_redirects:
            return self._get_once(
                url,
                timeout_s=timeout_s,
                headers=headers,
                max_bytes=max_bytes,
                allow_redirects=True,
            )

        current = url
        for _ in range(MAX_REDIRECTS + 1):
            res = self._get_once(
                current,
                timeout_s=timeout_s,
                headers=headers,
                max_bytes=max_bytes,
                allow_redirects=False,
            )
            if not res.is_redirect:
                return res

            location = res.headers.get("location")
            if not location:
                return res

            target = urljoin(current, location)
            target_origin = origin_of(target)
            if not target_origin:
                raise RedirectError(f"Redirect to unsupported URL: {target}")
            if target_origin != origin_of(current):
                raise RedirectError(f"Cross-origin redirect rejected: {current} -> {target}")
            current = target

        raise RedirectError(f"Too many redirects for {url}")

    def _get_once(
        self,
        url: str,
        *,
        timeout_s: float | None,
        headers: dict[str, str] | None,
        max_bytes: int | None,
        allow_redirects: bool,
    ) -> FetchResult:
        merged = {"User-Agent": self._user_agent}
        merged.update(headers or {})
        timeout = timeout_s if timeout_s is not None else self._timeout_s
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.get(
                    url,
                    timeout=timeout,
                    headers=merged,
                    allow_redirects=allow_redirects,
                    stream=True,
                )
                try:
                    resp_headers = {k.lower(): str(v) for k, v in resp.headers.items()}
                    if (
                        resp.status_code in TRANSIENT_HTTP_STATUSES
                        and attempt < self._max_retries
                    ):
                        retry_after = _retry_after_seconds(resp_headers)
                        wait_s = (
                            retry_after
                            if retry_after is not None
                            else self._backoff_base_s * (2**attempt)
                        )
                        self._sleep(wait_s)
                        continue

                    body = _read_body(resp, resp_headers, url=url, max_bytes=max_bytes)
                    return FetchResult(
                        url=url,
                        final_url=str(resp.url or url),
                        status_code=int(resp.status_code),
                        headers=resp_headers,
                        fetched_at=time.time(),
                        body=body,
                    )
                finally:
                    resp.close()
            except req_exc.RequestException as e:
                last_error = e
                if attempt >= self._max_retries:
                    break
                self._sleep(self._backoff_base_s * (2**attempt))

        raise FetchError(f"Failed to fetch {url}: {last_error}") from last_error


def _read_body(
    resp: requests.Response,
    headers: dict[str, str],
    *,
    url: str,
    max_bytes: int | None,
) -> bytes:
    if max_bytes is None:
        return resp.content

    content_length = headers.get("content-length")
    if content_length:
        try:
            declared = int(content_length)
        except ValueError:
            declared = None
        if declared is not None and declared > max_bytes:
            raise ResponseTooLargeError(
                f"{url} declares {declared} bytes (limit {max_bytes})"
            )

    chunks: list[bytes] = []
    total = 0
    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
        total += len(chunk)
        if total > max_bytes:
            raise ResponseTooLargeError(f"{url} exceeds {max_bytes} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def load_json(path: Path) -> Any | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
