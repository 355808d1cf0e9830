from __future__ import annotations

import ipaddress
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from urllib.parse import urlsplit

from .errors import ValidationError

RESOURCES_DIR_ENV = "WEBSNAP_RESOURCES_DIR"

DEFAULT_MAX_PAGES = 200
DEFAULT_MAX_DEPTH = 3
DEFAULT_TTL_HOURS = 24

MAX_PAGES_LIMIT = 1000
MAX_DEPTH_LIMIT = 10
TTL_HOURS_LIMIT = 24 * 30

RESOURCE_NAME_MAX = 64
RESOURCE_NAME_RE = re.compile(r"^@?[a-zA-Z0-9][a-zA-Z0-9._-]*(/[a-zA-Z0-9][a-zA-Z0-9._-]*)*$")


def default_resources_dir() -> Path:
    env = os.environ.get(RESOURCES_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".local" / "share" / "websnap" / "resources"


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(int(value), low), high)


def is_private_host(host: str) -> bool:
    hostname = host.lower().strip("[]")
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return True
    if hostname.endswith(".local"):
        return True
    try:
        ip = ipaddress.ip_address(hostname.split("%", 1)[0])
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified


def resource_name_error(name: str) -> str | None:
    if not name or not name.strip():
        return "Resource name cannot be empty"
    if len(name) > RESOURCE_NAME_MAX:
        return f"Resource name too long: {len(name)} chars (max {RESOURCE_NAME_MAX})"
    if not RESOURCE_NAME_RE.match(name):
        return (
            "Resource name must start with a letter and contain only letters, "
            "numbers, ., _, -, and / (no spaces)"
        )
    if ".." in name:
        return 'Resource name must not contain ".."'
    if "//" in name:
        return 'Resource name must not contain "//"'
    if name.endswith("/"):
        return 'Resource name must not end with "/"'
    return None


def validate_resource_name(name: str) -> None:
    error = resource_name_error(name)
    if error:
        raise ValidationError(error, hint="Pick a name like `react-docs` or `@scope/docs`.")


def resource_name_to_key(name: str) -> str:
    """Directory key for a resource: ``@scope/docs`` -> ``scope__docs``."""

    return name.lstrip("@").replace("/", "__")


def validate_website_url(url: str) -> None:
    hint = "Website resources require a valid public HTTPS URL (no localhost/private IPs)."
    try:
        parsed = urlsplit(url.strip())
        host = parsed.hostname or ""
    except ValueError as e:
        raise ValidationError("Invalid website URL", hint=hint) from e

    if parsed.scheme.lower() != "https":
        raise ValidationError("Website URL must use HTTPS", hint=hint)
    if not host:
        raise ValidationError("Invalid website URL", hint=hint)
    if parsed.username or parsed.password:
        raise ValidationError("Website URL must not include credentials", hint=hint)
    if is_private_host(host):
        raise ValidationError(
            "Website URL must not point to localhost or private IP ranges", hint=hint
        )


@dataclass(frozen=True)
class WebsiteResourceConfig:
    name: str
    url: str
    max_pages: int = DEFAULT_MAX_PAGES
    max_depth: int = DEFAULT_MAX_DEPTH
    ttl_hours: int = DEFAULT_TTL_HOURS

    @property
    def key(self) -> str:
        return resource_name_to_key(self.name)

    def validate(self) -> None:
        validate_resource_name(self.name)
        validate_website_url(self.url)

    def clamped(self) -> WebsiteResourceConfig:
        """Numeric fields pulled into their configured bounds."""

        return replace(
            self,
            max_pages=_clamp(self.max_pages, 1, MAX_PAGES_LIMIT),
            max_depth=_clamp(self.max_depth, 0, MAX_DEPTH_LIMIT),
            ttl_hours=_clamp(self.ttl_hours, 1, TTL_HOURS_LIMIT),
        )
