from __future__ import annotations

import pytest

from websnap.crawl import Crawler, CrawlTarget
from websnap.errors import CrawlExhaustedError, ValidationError
from websnap.render import MAX_RENDERS_PER_CRAWL

from conftest import PLAIN, html_page, prose
from test_render import SHELL_HTML, FakeRenderer

ORIGIN = "https://example.com"

SITEMAP = f"""<urlset>
<url><loc>{ORIGIN}/docs/a</loc></url>
<url><loc>{ORIGIN}/docs/private/x</loc></url>
<url><loc>{ORIGIN}/blog/post</loc></url>
<url><loc>https://other.example.net/docs/z</loc></url>
</urlset>"""


def _links(*hrefs: str) -> str:
    return "".join(f'<a href="{h}">{h}</a>' for h in hrefs)


@pytest.fixture
def site(session):
    session.add(f"{ORIGIN}/robots.txt", "User-agent: *\nDisallow: /docs/private\n", content_type=PLAIN)
    session.add(f"{ORIGIN}/sitemap.xml", SITEMAP, content_type="application/xml")
    session.add(
        f"{ORIGIN}/docs",
        html_page(
            "Docs",
            f"<p>{prose()}</p>"
            + _links("/docs/a", "/docs/b", "/docs/logo.png", "/docs/private/y", "/blog"),
        ),
    )
    session.add(f"{ORIGIN}/docs/a", html_page("A", f"<p>{prose()}</p>" + _links("/docs/c")))
    session.add(
        f"{ORIGIN}/docs/b",
        html_page(
            "B",
            f"<p>{prose()}</p>" + _links("/docs/d"),
            head='<meta name="robots" content="noindex">',
        ),
    )
    session.add(f"{ORIGIN}/docs/c", html_page("C", f"<p>{prose()}</p>"))
    session.add(f"{ORIGIN}/docs/d", html_page("D", f"<p>{prose()}</p>"))
    return session


def test_crawl_respects_scope_robots_and_noindex(site, http) -> None:
    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs"))

    assert result.scope_path == "/docs"
    assert [p.url for p in result.pages] == [
        f"{ORIGIN}/docs",
        f"{ORIGIN}/docs/a",
        f"{ORIGIN}/docs/c",
        f"{ORIGIN}/docs/d",
    ]
    assert [p.title for p in result.pages] == ["Docs", "A", "C", "D"]
    assert all(p.fetched_at.endswith("Z") for p in result.pages)

    fetched = set(site.calls)
    assert f"{ORIGIN}/docs/b" in fetched
    assert not any("/private" in url for url in fetched)
    assert not any("logo.png" in url for url in fetched)
    assert not any("/blog" in url for url in fetched)
    assert not any("other.example.net" in url for url in fetched)


def test_crawl_stops_at_max_pages(site, http) -> None:
    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs", max_pages=2))
    assert [p.url for p in result.pages] == [f"{ORIGIN}/docs", f"{ORIGIN}/docs/a"]


def test_crawl_depth_zero_fetches_only_start(site, http) -> None:
    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs", max_depth=0))
    assert [p.url for p in result.pages] == [f"{ORIGIN}/docs"]


def test_crawl_depth_limits_discovered_links(site, http) -> None:
    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs", max_depth=1))
    assert [p.url for p in result.pages] == [f"{ORIGIN}/docs", f"{ORIGIN}/docs/a"]


def test_nofollow_page_links_are_not_followed(session, http) -> None:
    session.add(
        f"{ORIGIN}/docs",
        html_page("Docs", _links("/docs/a"), head='<meta name="robots" content="nofollow">'),
    )
    session.add(f"{ORIGIN}/docs/a", html_page("A", "<p>a</p>"))

    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs"))

    assert [p.url for p in result.pages] == [f"{ORIGIN}/docs"]


def test_crawl_follows_markdown_links(session, http) -> None:
    session.add(f"{ORIGIN}/docs.md", "# Docs\n\n[A](/docs/a.md)", content_type="text/markdown")
    session.add(f"{ORIGIN}/docs/a.md", "# A\n\ntext", content_type="text/markdown")

    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs"))

    assert [p.url for p in result.pages] == [f"{ORIGIN}/docs", f"{ORIGIN}/docs/a"]
    assert result.pages[1].markdown.startswith(f"# A\n\nSource: {ORIGIN}/docs/a")


def test_crawl_without_indexable_pages_is_exhausted(http) -> None:
    with pytest.raises(CrawlExhaustedError):
        Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs"))


def test_crawl_rejects_unparseable_start(session, http) -> None:
    with pytest.raises(ValidationError):
        Crawler(http=http).crawl(CrawlTarget(start_url="not a url"))
    assert session.calls == []


def test_crawl_renders_shell_pages(session, http) -> None:
    session.add(f"{ORIGIN}/app", SHELL_HTML)
    renderer = FakeRenderer(final_url=f"{ORIGIN}/app")

    result = Crawler(http=http, renderer=renderer).crawl(CrawlTarget(start_url=f"{ORIGIN}/app"))

    assert renderer.calls == [f"{ORIGIN}/app"]
    assert "Loaded" in result.pages[0].markdown


def test_unparseable_page_does_not_abort_crawl(session, http) -> None:
    deep = "<div>" * 3000 + "deep" + "</div>" * 3000
    session.add(f"{ORIGIN}/docs", html_page("Docs", f"<p>{prose()}</p>" + _links("/docs/deep", "/docs/a")))
    session.add(f"{ORIGIN}/docs/deep", html_page("Deep", deep))
    session.add(f"{ORIGIN}/docs/a", html_page("A", f"<p>{prose()}</p>"))

    result = Crawler(http=http).crawl(CrawlTarget(start_url=f"{ORIGIN}/docs"))

    urls = [p.url for p in result.pages]
    assert urls[0] == f"{ORIGIN}/docs"
    assert f"{ORIGIN}/docs/a" in urls
    assert f"{ORIGIN}/docs/deep" in session.calls


def test_render_budget_caps_renders_per_crawl(session, http) -> None:
    shell_paths = [f"/app/p{i}" for i in range(MAX_RENDERS_PER_CRAWL + 5)]
    session.add(
        f"{ORIGIN}/sitemap.xml",
        "<urlset>" + "".join(f"<url><loc>{ORIGIN}{p}</loc></url>" for p in shell_paths) + "</urlset>",
        content_type="application/xml",
    )
    session.add(f"{ORIGIN}/app", SHELL_HTML)
    for path in shell_paths:
        session.add(f"{ORIGIN}{path}", SHELL_HTML)
    renderer = FakeRenderer(final_url=f"{ORIGIN}/app")

    result = Crawler(http=http, renderer=renderer).crawl(
        CrawlTarget(start_url=f"{ORIGIN}/app", max_pages=100)
    )

    assert len(result.pages) == len(shell_paths) + 1
    assert len(renderer.calls) == MAX_RENDERS_PER_CRAWL


def test_noindex_shell_page_is_never_rendered(session, http) -> None:
    session.add(
        f"{ORIGIN}/app",
        html_page(
            "App",
            '<div id="root"></div><a href="/app/next">n</a><script src="/app.js"></script>',
            head='<meta name="robots" content="noindex">',
        ),
    )
    session.add(f"{ORIGIN}/app/next", html_page("Next", f"<p>{prose()}</p>"))
    renderer = FakeRenderer(final_url=f"{ORIGIN}/app")

    result = Crawler(http=http, renderer=renderer).crawl(CrawlTarget(start_url=f"{ORIGIN}/app"))

    assert renderer.calls == []
    assert [p.url for p in result.pages] == [f"{ORIGIN}/app/next"]
