from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from websnap.cache import SnapshotCache, SnapshotStatus, is_manifest_fresh
from websnap.config import WebsiteResourceConfig
from websnap.crawl import Crawler
from websnap.errors import CrawlFailedError, ValidationError
from websnap.resource import load_website_resource
from websnap.snapshot import MANIFEST_FILE, WebsiteManifest

from conftest import html_page, prose

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
START = "https://docs.example.com/guide"


@pytest.fixture
def site(session):
    session.add(START, html_page("Guide", f"<p>{prose()}</p>"))
    return session


def _config(name: str = "docs") -> WebsiteResourceConfig:
    return WebsiteResourceConfig(name=name, url=START)


def test_is_manifest_fresh() -> None:
    manifest = WebsiteManifest(
        url=START, scope_path="/guide", crawled_at="2024-01-01T00:00:00Z", max_pages=1, max_depth=0
    )
    assert is_manifest_fresh(manifest, 24, now=T0 + timedelta(hours=23))
    assert not is_manifest_fresh(manifest, 24, now=T0 + timedelta(hours=24))
    broken = WebsiteManifest(url=START, scope_path="/", crawled_at="never", max_pages=1, max_depth=0)
    assert not is_manifest_fresh(broken, 24, now=T0)


def test_crawl_then_fresh_hit(site, http, tmp_path) -> None:
    crawler = Crawler(http=http)
    first = SnapshotCache(tmp_path, clock=lambda: T0).ensure(_config(), crawler)

    assert first.status is SnapshotStatus.CRAWLED
    assert first.path == tmp_path / "docs"
    assert first.manifest.crawled_at == "2024-01-01T00:00:00Z"
    assert (first.path / MANIFEST_FILE).is_file()
    assert [p.name for p in tmp_path.iterdir()] == ["docs"]

    calls_after_crawl = len(site.calls)
    second = SnapshotCache(tmp_path, clock=lambda: T0 + timedelta(hours=1)).ensure(_config(), crawler)

    assert second.status is SnapshotStatus.FRESH
    assert second.manifest == first.manifest
    assert len(site.calls) == calls_after_crawl


def test_expired_snapshot_is_recrawled(site, http, tmp_path) -> None:
    crawler = Crawler(http=http)
    SnapshotCache(tmp_path, clock=lambda: T0).ensure(_config(), crawler)

    later = T0 + timedelta(hours=48)
    again = SnapshotCache(tmp_path, clock=lambda: later).ensure(_config(), crawler)

    assert again.status is SnapshotStatus.CRAWLED
    assert again.manifest.crawled_at == "2024-01-03T00:00:00Z"
    assert [p.name for p in tmp_path.iterdir()] == ["docs"]


def test_failed_recrawl_serves_stale_snapshot(site, http, tmp_path) -> None:
    crawler = Crawler(http=http)
    first = SnapshotCache(tmp_path, clock=lambda: T0).ensure(_config(), crawler)

    site.offline = True
    stale = SnapshotCache(tmp_path, clock=lambda: T0 + timedelta(hours=48)).ensure(_config(), crawler)

    assert stale.status is SnapshotStatus.STALE_FALLBACK
    assert stale.manifest == first.manifest
    assert [p.name for p in tmp_path.iterdir()] == ["docs"]


def test_failed_first_crawl_raises(session, http, tmp_path) -> None:
    session.offline = True
    with pytest.raises(CrawlFailedError):
        SnapshotCache(tmp_path).ensure(_config(), Crawler(http=http))
    assert list(tmp_path.iterdir()) == []


def test_load_website_resource(site, http, tmp_path) -> None:
    resource = load_website_resource(
        _config("@scope/docs"), resources_dir=tmp_path, http=http, clock=lambda: T0
    )

    assert resource.type == "website"
    assert resource.name == "@scope/docs"
    assert resource.fs_name == "scope__docs"
    assert resource.path == tmp_path / "scope__docs"
    assert resource.status is SnapshotStatus.CRAWLED
    assert resource.page_count == 1


def test_load_website_resource_validates_before_network(session, http, tmp_path) -> None:
    config = WebsiteResourceConfig(name="docs", url="http://docs.example.com/")
    with pytest.raises(ValidationError):
        load_website_resource(config, resources_dir=tmp_path, http=http)
    assert session.calls == []


class ExplodingCrawler:
    def __init__(self, error: BaseException) -> None:
        self.error = error

    def crawl(self, target):
        raise self.error


def test_unexpected_crawl_error_serves_stale_snapshot(site, http, tmp_path) -> None:
    first = SnapshotCache(tmp_path, clock=lambda: T0).ensure(_config(), Crawler(http=http))

    later = SnapshotCache(tmp_path, clock=lambda: T0 + timedelta(hours=48))
    stale = later.ensure(_config(), ExplodingCrawler(RecursionError("too deep")))

    assert stale.status is SnapshotStatus.STALE_FALLBACK
    assert stale.manifest == first.manifest
    assert [p.name for p in tmp_path.iterdir()] == ["docs"]


def test_unexpected_first_crawl_error_is_wrapped(tmp_path) -> None:
    with pytest.raises(CrawlFailedError) as excinfo:
        SnapshotCache(tmp_path).ensure(_config(), ExplodingCrawler(RuntimeError("boom")))

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert list(tmp_path.iterdir()) == []


def test_interrupted_crawl_removes_temp_dir(tmp_path) -> None:
    with pytest.raises(KeyboardInterrupt):
        SnapshotCache(tmp_path).ensure(_config(), ExplodingCrawler(KeyboardInterrupt()))

    assert list(tmp_path.iterdir()) == []
