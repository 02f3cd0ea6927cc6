"""Integration tests for ScraperService.

Each test runs the whole pipeline (cache, robots.txt, rate limit, retries,
fetch, parse, provenance) against respx-mocked HTTP and the fake clock from
tests/conftest.py, so politeness waits are asserted on without sleeping.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from politefetch.config import Settings
from politefetch.errors import ErrorKind
from politefetch.models.registry import DataType
from politefetch.service import DEFAULT_PAGES, ScraperService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from conftest import FakeClock

ROBOTS_ALLOW_ALL = "User-agent: *\nDisallow:\n"
SITE = "https://example.com"
PAGE = f"{SITE}/page"

_HTML = (
    "<html><head><title>Example</title></head><body>"
    "<h1>Welcome</h1>"
    "<p>This paragraph is comfortably longer than fifty characters in total.</p>"
    "</body></html>"
)

_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>News</title>
<item><title>One</title><link>https://example.com/1</link><description>First</description></item>
<item><title>Two</title><link>https://example.com/2</link><description>Second</description></item>
<item><title>Three</title><link>https://example.com/3</link><description>Third</description></item>
</channel></rss>
"""


def _allow_robots(origin: str = SITE, text: str = ROBOTS_ALLOW_ALL) -> respx.Route:
    return respx.get(f"{origin}/robots.txt").mock(return_value=httpx.Response(200, text=text))


@pytest.fixture()
async def unthrottled(clock: FakeClock) -> AsyncIterator[ScraperService]:
    """Service without a per-origin interval, so only backoff waits are recorded."""
    settings = Settings(rate_limit={"min_interval_seconds": 0})
    async with httpx.AsyncClient() as client:
        yield ScraperService.from_settings(settings, client, sleep_fn=clock.sleep, clock_fn=clock)


# ---------------------------------------------------------------------------
# scrape: gates and caching
# ---------------------------------------------------------------------------


class TestScrape:
    @respx.mock
    async def test_success_registers_and_caches(self, service: ScraperService) -> None:
        _allow_robots()
        respx.get(PAGE).mock(return_value=httpx.Response(200, text=_HTML))

        result = await service.scrape(PAGE)

        assert result.success is True
        assert result.data == _HTML
        assert result.cached is False
        assert result.fetched_at is not None
        entry = service.get_data_source(result.source_id)
        assert entry is not None
        assert entry.url == PAGE
        assert entry.data_type == DataType.HTML
        assert service.get_cache_stats()["urls"] == [PAGE]

    @respx.mock
    async def test_second_call_served_from_cache(self, service: ScraperService) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(return_value=httpx.Response(200, text=_HTML))

        first = await service.scrape(PAGE)
        second = await service.scrape(PAGE)

        assert route.call_count == 1
        assert first.cached is False
        assert second.cached is True
        assert second.data == first.data
        # Cache hits are not new captures
        assert second.source_id is None
        assert len(service.get_all_data_sources()) == 1

    @respx.mock
    async def test_force_refresh_bypasses_cache(self, service: ScraperService) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(
            side_effect=[httpx.Response(200, text="v1"), httpx.Response(200, text="v2")]
        )

        await service.scrape(PAGE)
        result = await service.scrape(PAGE, force_refresh=True)

        assert route.call_count == 2
        assert result.cached is False
        assert result.data == "v2"
        assert service.cache.get(PAGE) == "v2"

    @respx.mock
    async def test_cache_expires_after_ttl(self, service: ScraperService, clock: FakeClock) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(return_value=httpx.Response(200, text=_HTML))

        await service.scrape(PAGE)
        clock.advance(30 * 60)
        result = await service.scrape(PAGE)

        assert route.call_count == 2
        assert result.cached is False

    @respx.mock
    async def test_robots_block_skips_fetch(self, service: ScraperService) -> None:
        robots = _allow_robots(text="User-agent: *\nDisallow: /private\n")

        result = await service.scrape(f"{SITE}/private/report")

        assert result.success is False
        assert result.error_type == ErrorKind.ROBOTS_BLOCKED
        assert result.error == "Blocked by robots.txt (/private)"
        # Only robots.txt was requested
        assert respx.calls.call_count == robots.call_count == 1
        assert service.get_all_data_sources() == []

    @respx.mock
    async def test_robots_fetched_once_per_origin(self, service: ScraperService) -> None:
        robots = _allow_robots()
        respx.get(f"{SITE}/a").mock(return_value=httpx.Response(200, text="a"))
        respx.get(f"{SITE}/b").mock(return_value=httpx.Response(200, text="b"))

        await service.scrape(f"{SITE}/a")
        await service.scrape(f"{SITE}/b")

        assert robots.call_count == 1

    @respx.mock
    async def test_missing_robots_fails_open(self, service: ScraperService) -> None:
        respx.get(f"{SITE}/robots.txt").mock(return_value=httpx.Response(404))
        respx.get(PAGE).mock(return_value=httpx.Response(200, text=_HTML))

        result = await service.scrape(PAGE)

        assert result.success is True

    async def test_invalid_url(self, service: ScraperService) -> None:
        result = await service.scrape("not-a-url")
        assert result.success is False
        assert result.error_type == ErrorKind.INVALID_URL


# ---------------------------------------------------------------------------
# scrape: politeness and retries
# ---------------------------------------------------------------------------


class TestPoliteness:
    @respx.mock
    async def test_same_origin_requests_spaced(
        self, service: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        request_times: list[float] = []

        def _record(request: httpx.Request) -> httpx.Response:
            request_times.append(clock())
            return httpx.Response(200, text="ok")

        respx.get(f"{SITE}/a").mock(side_effect=_record)
        respx.get(f"{SITE}/b").mock(side_effect=_record)

        await service.scrape(f"{SITE}/a")
        await service.scrape(f"{SITE}/b")

        assert request_times[1] - request_times[0] >= 2.0
        assert clock.sleeps == [2.0]

    @respx.mock
    async def test_concurrent_same_origin_serialised(
        self, service: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        for path in ("a", "b", "c"):
            respx.get(f"{SITE}/{path}").mock(return_value=httpx.Response(200, text=path))

        await service.check_robots_txt(SITE)
        results = await asyncio.gather(
            *(service.scrape(f"{SITE}/{path}") for path in ("a", "b", "c"))
        )

        assert all(result.success for result in results)
        # Each caller after the first waits out a full interval behind the one before
        assert clock.sleeps == [2.0, 2.0]

    @respx.mock
    async def test_other_origins_not_delayed(
        self, service: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        _allow_robots("https://other.example")
        respx.get(PAGE).mock(return_value=httpx.Response(200, text="one"))
        respx.get("https://other.example/page").mock(return_value=httpx.Response(200, text="two"))

        await service.scrape(PAGE)
        await service.scrape("https://other.example/page")

        assert clock.sleeps == []

    @respx.mock
    async def test_crawl_delay_extends_interval(
        self, service: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots(text="User-agent: *\nCrawl-delay: 10\n")
        respx.get(f"{SITE}/a").mock(return_value=httpx.Response(200, text="a"))
        respx.get(f"{SITE}/b").mock(return_value=httpx.Response(200, text="b"))

        await service.scrape(f"{SITE}/a")
        await service.scrape(f"{SITE}/b")

        assert clock.sleeps == [10.0]

    @respx.mock
    async def test_timeouts_retried_with_backoff(
        self, unthrottled: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(side_effect=httpx.ReadTimeout("timed out"))

        result = await unthrottled.scrape(PAGE)

        assert result.success is False
        assert result.error_type == ErrorKind.TIMEOUT
        assert route.call_count == 3
        assert clock.sleeps == [1.0, 2.0]

    @respx.mock
    async def test_backoff_and_interval_combine(
        self, service: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        respx.get(PAGE).mock(side_effect=httpx.ReadTimeout("timed out"))

        await service.scrape(PAGE)

        # Backoff 1s leaves 1s of the 2s interval; backoff 2s covers it
        assert clock.sleeps == [1.0, 1.0, 2.0]

    @respx.mock
    async def test_server_error_recovers(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(
            side_effect=[httpx.Response(503), httpx.Response(200, text="back")]
        )

        result = await unthrottled.scrape(PAGE)

        assert result.success is True
        assert result.data == "back"
        assert route.call_count == 2

    @respx.mock
    async def test_not_found_not_retried(
        self, unthrottled: ScraperService, clock: FakeClock
    ) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(return_value=httpx.Response(404))

        result = await unthrottled.scrape(PAGE)

        assert result.error_type == ErrorKind.CLIENT_ERROR
        assert result.error == f"HTTP 404 fetching {PAGE}"
        assert route.call_count == 1
        assert clock.sleeps == []

    @respx.mock
    async def test_too_many_requests_retried(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        route = respx.get(PAGE).mock(return_value=httpx.Response(429))

        result = await unthrottled.scrape(PAGE)

        assert result.error_type == ErrorKind.RATE_LIMITED
        assert route.call_count == 3

    @respx.mock
    async def test_dns_failure(self, unthrottled: ScraperService) -> None:
        respx.get(f"{SITE}/robots.txt").mock(
            side_effect=httpx.ConnectError("[Errno -2] Name or service not known")
        )
        respx.get(PAGE).mock(side_effect=httpx.ConnectError("[Errno -2] Name or service not known"))

        result = await unthrottled.scrape(PAGE, max_retries=1)

        assert result.error_type == ErrorKind.DNS_ERROR


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TestPages:
    @respx.mock
    async def test_scrape_website_parses(self, service: ScraperService) -> None:
        _allow_robots()
        respx.get(PAGE).mock(return_value=httpx.Response(200, text=_HTML))

        result = await service.scrape_website(PAGE)

        assert result.parsed is not None
        assert result.parsed.title == "Example"
        assert [h.text for h in result.parsed.headings] == ["Welcome"]

    @respx.mock
    async def test_failure_has_no_parse(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        respx.get(PAGE).mock(return_value=httpx.Response(404))

        result = await unthrottled.scrape_website(PAGE)

        assert result.success is False
        assert result.parsed is None

    @respx.mock
    async def test_batch_continues_past_failures(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        respx.get(f"{SITE}/").mock(return_value=httpx.Response(200, text=_HTML))
        respx.get(f"{SITE}/missing").mock(return_value=httpx.Response(404))
        respx.get(f"{SITE}/about").mock(return_value=httpx.Response(200, text=_HTML))

        results = await unthrottled.scrape_website_pages(
            f"{SITE}/ignored/path", ["/", "/missing", "/about"]
        )

        assert [item.page for item in results] == ["/", "/missing", "/about"]
        assert [item.url for item in results] == [f"{SITE}/", f"{SITE}/missing", f"{SITE}/about"]
        assert [item.success for item in results] == [True, False, True]
        assert results[1].error_type == ErrorKind.CLIENT_ERROR

    @respx.mock
    async def test_default_pages(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        for page in DEFAULT_PAGES:
            respx.get(f"{SITE}{page}").mock(return_value=httpx.Response(200, text=_HTML))

        results = await unthrottled.scrape_website_pages(SITE)

        assert [item.page for item in results] == list(DEFAULT_PAGES)
        assert all(item.success for item in results)


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------


class TestFeeds:
    @respx.mock
    async def test_fetch_rss(self, service: ScraperService) -> None:
        _allow_robots()
        feed_url = f"{SITE}/feed.xml"
        respx.get(feed_url).mock(return_value=httpx.Response(200, text=_RSS))

        result = await service.fetch_rss(feed_url)

        assert result.success is True
        assert [item.title for item in result.items] == ["One", "Two", "Three"]
        entry = service.get_data_source(result.source_id)
        assert entry is not None
        assert entry.data_type == DataType.RSS
        assert entry.url == feed_url

    @respx.mock
    async def test_feed_body_naming_a_file_yields_no_items(
        self, service: ScraperService, tmp_path: Path
    ) -> None:
        local_feed = tmp_path / "local.xml"
        local_feed.write_text(_RSS, encoding="utf-8")
        _allow_robots()
        respx.get(f"{SITE}/feed.xml").mock(return_value=httpx.Response(200, text=str(local_feed)))

        result = await service.fetch_rss(f"{SITE}/feed.xml")

        assert result.success is True
        assert result.items == []

    @respx.mock
    async def test_fetch_rss_failure(self, unthrottled: ScraperService) -> None:
        _allow_robots()
        respx.get(f"{SITE}/feed.xml").mock(return_value=httpx.Response(404))

        result = await unthrottled.fetch_rss(f"{SITE}/feed.xml")

        assert result.success is False
        assert result.items == []
        assert result.error_type == ErrorKind.CLIENT_ERROR

    @respx.mock
    async def test_search_news(self, service: ScraperService) -> None:
        _allow_robots("https://news.google.com")
        route = respx.get(host="news.google.com", path="/rss/search").mock(
            return_value=httpx.Response(200, text=_RSS)
        )

        result = await service.search_news("acme corp", limit=2)

        assert route.calls.last.request.url.params["q"] == "acme corp"
        assert result.success is True
        assert [item.title for item in result.items] == ["One", "Two"]
        assert all(item.source == "Google News" for item in result.items)
        entry = service.get_data_source(result.source_id)
        assert entry is not None
        assert entry.data_type == DataType.NEWS_SEARCH

    def test_news_url_encodes_query(self, service: ScraperService) -> None:
        url = service.news_search_url_for("a&b c")
        assert url.startswith("https://news.google.com/rss/search?q=a%26b%20c&")

    @respx.mock
    async def test_search_news_fetch_failure(self, unthrottled: ScraperService) -> None:
        _allow_robots("https://news.google.com")
        respx.get(host="news.google.com", path="/rss/search").mock(
            return_value=httpx.Response(500)
        )

        result = await unthrottled.search_news("acme", limit=5)

        assert result.success is False
        assert result.error_type == ErrorKind.SERVER_ERROR


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class TestIntrospection:
    @respx.mock
    async def test_check_robots_txt(self, service: ScraperService) -> None:
        _allow_robots(text="User-agent: *\nDisallow: /admin\nCrawl-delay: 4\n")

        rules = await service.check_robots_txt("example.com")

        assert rules.allowed is True
        assert rules.disallowed_paths == ["/admin"]
        assert rules.crawl_delay_seconds == 4

    def test_register_and_lookup_by_url(self, service: ScraperService) -> None:
        first = service.register_data_source(SITE, DataType.HTML, "one")
        second = service.register_data_source(SITE, "html", "two")

        assert [entry.id for entry in service.get_data_sources_for_url(SITE)] == [first, second]
        assert service.get_data_source("src_0_unknown") is None

    @respx.mock
    async def test_clear_cache(self, service: ScraperService) -> None:
        _allow_robots()
        respx.get(f"{SITE}/a").mock(return_value=httpx.Response(200, text="a"))
        respx.get(f"{SITE}/b").mock(return_value=httpx.Response(200, text="b"))
        await service.scrape(f"{SITE}/a")
        await service.scrape(f"{SITE}/b")

        service.clear_cache(f"{SITE}/a")
        assert service.get_cache_stats()["urls"] == [f"{SITE}/b"]

        service.clear_cache()
        assert service.get_cache_stats()["size"] == 0
