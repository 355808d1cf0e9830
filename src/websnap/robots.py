from __future__ import annotations

import logging
from dataclasses import dataclass, field

import requests

from .content import MAX_FETCH_BYTES
from .errors import FetchError
from .http_client import DEFAULT_USER_AGENT, HttpClient
from .urls import path_of

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT_S = 10


@dataclass(frozen=True)
class RobotsRules:
    """Allow/Disallow prefixes that apply to this crawler.

    Empty rules are permissive.
    """

    allows: tuple[str, ...] = ()
    disallows: tuple[str, ...] = ()

    def can_fetch(self, url: str) -> bool:
        return is_allowed(path_of(url), self)


@dataclass
class _Group:
    agents: list[str] = field(default_factory=list)
    allows: list[str] = field(default_factory=list)
    disallows: list[str] = field(default_factory=list)


def parse_robots(raw_text: str, *, user_agent: str = DEFAULT_USER_AGENT) -> RobotsRules:
    """Very small robots.txt parser.

    Consecutive ``User-agent:`` lines share one group. A group closes when a
    new ``User-agent:`` line follows at least one Allow/Disallow. Rules from
    every group naming ``*`` or ``user_agent`` are merged.
    """

    groups: list[_Group] = []
    current = _Group()
    has_rules = False

    for line in raw_text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            if has_rules and current.agents:
                groups.append(current)
                current = _Group()
                has_rules = False
            if value:
                current.agents.append(value.lower())
        elif key == "allow":
            current.allows.append(value)
            has_rules = True
        elif key == "disallow":
            current.disallows.append(value)
            has_rules = True

    if current.agents:
        groups.append(current)

    # Match both the full agent string and its product token.
    own_agents = {"*", user_agent.lower(), user_agent.split("/", 1)[0].lower()}
    matching = [g for g in groups if any(a in own_agents for a in g.agents)]
    return RobotsRules(
        allows=tuple(rule for g in matching for rule in g.allows),
        disallows=tuple(rule for g in matching for rule in g.disallows),
    )


def is_allowed(path: str, rules: RobotsRules) -> bool:
    """Longest matching prefix wins; equal-length ties favor Allow."""

    best_len = -1
    best_allow = True
    for prefixes, allow in ((rules.disallows, False), (rules.allows, True)):
        for rule in prefixes:
            rule = rule.strip()
            if not rule or not path.startswith(rule):
                continue
            if len(rule) > best_len or (len(rule) == best_len and allow):
                best_len = len(rule)
                best_allow = allow
    return best_allow


def fetch_robots(http: HttpClient, origin: str) -> RobotsRules:
    """Fetch ``{origin}/robots.txt``; any failure yields permissive rules."""

    robots_url = f"{origin}/robots.txt"
    try:
        res = http.get(robots_url, timeout_s=ROBOTS_TIMEOUT_S, max_bytes=MAX_FETCH_BYTES)
    except (FetchError, requests.RequestException) as e:
        logger.warning("robots.txt unavailable for %s: %s", origin, e)
        return RobotsRules()

    if not res.ok:
        logger.debug("robots.txt for %s returned %s", origin, res.status_code)
        return RobotsRules()
    return parse_robots(res.text, user_agent=http.user_agent)
