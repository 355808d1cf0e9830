from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .fetcher import MarkdownNegotiation
from .robots import RobotsRules, is_allowed
from .urls import has_binary_extension, in_scope, path_of


@dataclass(frozen=True)
class CrawlQueueItem:
    url: str
    depth: int


@dataclass(frozen=True)
class CrawledPage:
    url: str
    title: str
    markdown: str
    headings: list[str]
    fetched_at: str


@dataclass
class CrawlState:
    """Everything mutable about one crawl.

    Created per crawl and never shared, so concurrent crawls of different
    resources cannot see each other's queue, visited set or markdown
    negotiation results.
    """

    origin: str
    scope_path: str
    max_depth: int
    robots: RobotsRules = field(default_factory=RobotsRules)
    renders_remaining: int = 0
    queue: deque[CrawlQueueItem] = field(default_factory=deque)
    visited: set[str] = field(default_factory=set)
    pages: list[CrawledPage] = field(default_factory=list)
    negotiation: MarkdownNegotiation = field(default_factory=MarkdownNegotiation)

    def enqueue(self, url: str, depth: int) -> bool:
        """Queue ``url`` (already normalized) unless a crawl rule rejects it."""

        if url in self.visited:
            return False
        if depth > self.max_depth:
            return False
        if not in_scope(url, self.origin, self.scope_path):
            return False
        if has_binary_extension(url):
            return False
        if not is_allowed(path_of(url), self.robots):
            return False

        self.visited.add(url)
        self.queue.append(CrawlQueueItem(url=url, depth=depth))
        return True

    def pop(self) -> CrawlQueueItem | None:
        if not self.queue:
            return None
        return self.queue.popleft()
