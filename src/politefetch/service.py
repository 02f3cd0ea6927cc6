"""ScraperService: the polite fetching orchestrator.

One instance owns the cache, robots resolver, rate limiter, retry controller
and provenance registry. It is built once in the server lifespan (or by the
embedding application) and shared by every caller.

``scrape`` runs the gates in order: cache, robots.txt, rate limit, fetch with
retries, then cache write and provenance registration. It never raises for
network or policy problems; failures come back as results with an
``error_type``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urljoin, urlparse

import structlog

from politefetch.cache import ContentCache
from politefetch.errors import ErrorKind, FetchError
from politefetch.fetcher import HttpFetcher
from politefetch.models.registry import DataSourceEntry, DataType
from politefetch.models.results import (
    FeedResult,
    NewsSearchResult,
    PageBatchItem,
    PageResult,
    ScrapeResult,
)
from politefetch.parser import parse_feed_items, parse_html
from politefetch.ratelimit import DomainRateLimiter
from politefetch.registry import DataSourceRegistry
from politefetch.retry import RetryController
from politefetch.robots import RobotsPolicyResolver, origin_of

if TYPE_CHECKING:
    import httpx

    from politefetch.config import Settings
    from politefetch.models.robots import RobotsDecision, RobotsRules
    from politefetch.protocols import CacheProtocol, FetcherProtocol

log = structlog.get_logger()

DEFAULT_PAGES: tuple[str, ...] = ("/", "/about", "/pricing", "/blog", "/products", "/services")


class ScraperService:
    """Polite fetching of pages and feeds with caching and provenance."""

    def __init__(
        self,
        *,
        fetcher: FetcherProtocol,
        cache: CacheProtocol,
        robots: RobotsPolicyResolver,
        rate_limiter: DomainRateLimiter,
        retry: RetryController,
        registry: DataSourceRegistry,
        news_search_url: str,
        news_default_limit: int = 20,
        news_default_source: str | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.robots = robots
        self.rate_limiter = rate_limiter
        self.retry = retry
        self.registry = registry
        self.news_search_url = news_search_url
        self.news_default_limit = news_default_limit
        self.news_default_source = news_default_source

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock_fn: Callable[[], float] | None = None,
    ) -> ScraperService:
        """Wire every component from ``settings`` around a shared httpx client.

        ``sleep_fn`` and ``clock_fn`` replace asyncio.sleep / time.monotonic
        for the rate limiter, backoff and cache TTL (tests use a fake clock).
        """
        fetcher = HttpFetcher(client, settings.fetcher)
        return cls(
            fetcher=fetcher,
            cache=ContentCache(
                ttl_seconds=settings.cache.ttl_minutes * 60,
                max_entries=settings.cache.max_entries,
                clock_fn=clock_fn,
            ),
            robots=RobotsPolicyResolver(
                fetcher,
                timeout_seconds=settings.robots.timeout_seconds,
                max_entries=settings.robots.max_entries,
            ),
            rate_limiter=DomainRateLimiter(
                settings.rate_limit.min_interval_seconds,
                sleep_fn=sleep_fn,
                clock_fn=clock_fn,
                max_origins=settings.rate_limit.max_origins,
            ),
            retry=RetryController(
                max_retries=settings.retry.max_retries,
                backoff_base_seconds=settings.retry.backoff_base_seconds,
                retry_client_errors=settings.retry.retry_client_errors,
                sleep_fn=sleep_fn,
            ),
            registry=DataSourceRegistry(
                max_entries=settings.registry.max_entries,
                preview_chars=settings.registry.preview_chars,
            ),
            news_search_url=settings.news.search_url_template,
            news_default_limit=settings.news.default_limit,
            news_default_source=settings.news.default_source,
        )

    # ------------------------------------------------------------------
    # Orchestrator
    # ------------------------------------------------------------------

    async def scrape(
        self,
        url: str,
        *,
        force_refresh: bool = False,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> ScrapeResult:
        """Fetch ``url`` politely. Never raises for network or policy failures."""
        start = time.monotonic()

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return self._failure(
                url, ErrorKind.INVALID_URL, f"Not an absolute http(s) URL: {url!r}", start
            )

        if not force_refresh:
            cached = self.cache.get(url)
            if cached is not None:
                self._log_scrape(url, start, success=True, cached=True)
                return ScrapeResult(success=True, url=url, data=cached, cached=True)

        decision = await self.robots.is_allowed(url)
        if not decision.allowed:
            return self._failure(
                url, ErrorKind.ROBOTS_BLOCKED, decision.reason or "Blocked by robots.txt", start
            )

        origin = origin_of(url)

        async def attempt(_attempt: int) -> str:
            await self.rate_limiter.throttle(origin, decision.crawl_delay_seconds)
            return await self.fetcher.fetch(url, timeout=timeout)

        try:
            data = await self.retry.run(attempt, max_retries=max_retries)
        except FetchError as exc:
            return self._failure(url, exc.kind, exc.message, start)

        self.cache.set(url, data)
        source_id = self.registry.register(url, DataType.HTML, data)
        self._log_scrape(url, start, success=True, cached=False)

        return ScrapeResult(
            success=True,
            url=url,
            data=data,
            cached=False,
            source_id=source_id,
            fetched_at=datetime.now(UTC),
        )

    def _failure(self, url: str, kind: ErrorKind, message: str, start: float) -> ScrapeResult:
        self._log_scrape(url, start, success=False, cached=False, error=message, error_type=kind)
        return ScrapeResult(success=False, url=url, error=message, error_type=kind)

    @staticmethod
    def _log_scrape(
        url: str,
        start: float,
        *,
        success: bool,
        cached: bool,
        error: str | None = None,
        error_type: ErrorKind | None = None,
    ) -> None:
        emit = log.info if success else log.warning
        emit(
            "scrape_complete",
            url=url[:100],
            success=success,
            cached=cached,
            duration_ms=int((time.monotonic() - start) * 1000),
            error=error,
            error_type=error_type,
        )

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def scrape_website(
        self,
        url: str,
        *,
        force_refresh: bool = False,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> PageResult:
        """Scrape ``url`` and parse the HTML on success."""
        result = await self.scrape(
            url, force_refresh=force_refresh, max_retries=max_retries, timeout=timeout
        )
        if not result.success or result.data is None:
            return PageResult(**result.model_dump())
        return PageResult(**result.model_dump(), parsed=parse_html(result.data))

    async def scrape_website_pages(
        self,
        base_url: str,
        pages: Sequence[str] | None = None,
    ) -> list[PageBatchItem]:
        """Scrape several paths of one site in order.

        A failing page is reported in its own item; it never stops the batch.
        """
        base_origin = origin_of(base_url)
        results: list[PageBatchItem] = []

        for page in pages if pages is not None else DEFAULT_PAGES:
            full_url = urljoin(base_origin, page)
            try:
                result = await self.scrape_website(full_url)
            except Exception as exc:
                log.warning("page_scrape_failed", page=page, url=full_url, exc_info=True)
                results.append(
                    PageBatchItem(
                        page=page,
                        success=False,
                        url=full_url,
                        error=str(exc) or type(exc).__name__,
                        error_type=ErrorKind.UNKNOWN,
                    )
                )
                continue
            results.append(PageBatchItem(page=page, **result.model_dump()))

        return results

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    def news_search_url_for(self, query: str) -> str:
        return self.news_search_url.format(query=quote(query, safe=""))

    async def search_news(self, query: str, limit: int | None = None) -> NewsSearchResult:
        """Search the configured news feed for ``query``."""
        limit = limit or self.news_default_limit
        feed_url = self.news_search_url_for(query)

        result = await self.scrape(feed_url)
        if not result.success or result.data is None:
            return NewsSearchResult(
                success=False, query=query, error=result.error, error_type=result.error_type
            )

        try:
            items = parse_feed_items(result.data, default_source=self.news_default_source)
        except Exception as exc:
            log.warning("news_search_parse_failed", query=query, exc_info=True)
            return NewsSearchResult(
                success=False,
                query=query,
                error=str(exc) or type(exc).__name__,
                error_type=ErrorKind.SEARCH_FAILED,
            )

        source_id = self.registry.register(feed_url, DataType.NEWS_SEARCH, items)
        log.info("news_search_complete", query=query, item_count=len(items), source_id=source_id)
        return NewsSearchResult(
            success=True,
            query=query,
            items=items[:limit],
            source_id=source_id,
            fetched_at=datetime.now(UTC),
        )

    async def fetch_rss(self, feed_url: str) -> FeedResult:
        """Fetch and parse an RSS or Atom feed."""
        result = await self.scrape(feed_url)
        if not result.success or result.data is None:
            return FeedResult(
                success=False, feed_url=feed_url, error=result.error, error_type=result.error_type
            )

        items = parse_feed_items(result.data)
        source_id = self.registry.register(feed_url, DataType.RSS, items)
        log.info("feed_fetch_complete", feed_url=feed_url, item_count=len(items))
        return FeedResult(
            success=True,
            feed_url=feed_url,
            items=items,
            source_id=source_id,
            fetched_at=datetime.now(UTC),
        )

    # ------------------------------------------------------------------
    # Policy, provenance and cache introspection
    # ------------------------------------------------------------------

    async def is_allowed(self, url: str) -> RobotsDecision:
        return await self.robots.is_allowed(url)

    async def check_robots_txt(self, domain: str) -> RobotsRules:
        return await self.robots.check_policy(domain)

    def register_data_source(self, url: str, data_type: DataType | str, data: Any) -> str:
        return self.registry.register(url, data_type, data)

    def get_data_source(self, source_id: str) -> DataSourceEntry | None:
        return self.registry.lookup(source_id)

    def get_data_sources_for_url(self, url: str) -> list[DataSourceEntry]:
        return self.registry.lookup_by_url(url)

    def get_all_data_sources(self) -> list[DataSourceEntry]:
        return self.registry.all()

    def clear_cache(self, url: str | None = None) -> None:
        self.cache.clear(url)

    def get_cache_stats(self) -> dict:
        return self.cache.stats()
