"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState (HTTP client + ScraperService) via the FastMCP lifespan
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import politefetch.tools.feeds as t_feeds
import politefetch.tools.policy as t_policy
import politefetch.tools.provenance as t_provenance
import politefetch.tools.scrape_website as t_scrape
from politefetch import __version__
from politefetch.config import Settings
from politefetch.errors import FetchError
from politefetch.fetcher import build_http_client
from politefetch.schedulers import run_cache_sweep_scheduler
from politefetch.service import ScraperService
from politefetch.state import AppState
from politefetch.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream, so logs go to stderr
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
    )

    http_client = build_http_client(settings.fetcher)
    service = ScraperService.from_settings(settings, http_client)
    state = AppState(settings=settings, http_client=http_client, service=service)

    cache_sweep_task = asyncio.create_task(run_cache_sweep_scheduler(state))

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        user_agent=settings.fetcher.user_agent,
        min_interval_seconds=settings.rate_limit.min_interval_seconds,
        cache_ttl_minutes=settings.cache.ttl_minutes,
    )

    try:
        yield state
    finally:
        cache_sweep_task.cancel()
        with suppress(asyncio.CancelledError):
            await cache_sweep_task
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("politefetch", lifespan=lifespan)
# FastMCP has no version kwarg; set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: FetchError) -> CallToolResult:
    """Convert a FetchError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


async def _run_tool(tool: str, call: Awaitable[dict]) -> object:
    try:
        return await call
    except FetchError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.kind,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise


def _state(ctx: Context) -> AppState:
    return ctx.request_context.lifespan_context


@mcp.tool()
async def scrape_website(
    url: str, ctx: Context, force_refresh: bool = False, include_raw: bool = False
) -> object:
    """Fetch a web page politely and return its parsed content.

    Honours robots.txt and a per-site rate limit. Results are cached for 30
    minutes; set force_refresh to bypass the cache. The raw HTML is only
    included when include_raw is true.
    """
    return await _run_tool(
        "scrape_website", t_scrape.handle(url, force_refresh, include_raw, _state(ctx))
    )


@mcp.tool()
async def scrape_website_pages(
    base_url: str,
    ctx: Context,
    pages: list[str] | None = None,
    include_raw: bool = False,
) -> object:
    """Fetch several paths of one site (default: /, /about, /pricing, /blog, /products, /services).

    Each page is reported separately; a failing page does not stop the batch.
    """
    return await _run_tool(
        "scrape_website_pages",
        t_scrape.handle_pages(base_url, pages, include_raw, _state(ctx)),
    )


@mcp.tool()
async def search_news(query: str, ctx: Context, limit: int | None = None) -> object:
    """Search recent news articles for a query via a public news RSS feed."""
    return await _run_tool("search_news", t_feeds.handle_search_news(query, limit, _state(ctx)))


@mcp.tool()
async def fetch_rss(feed_url: str, ctx: Context) -> object:
    """Fetch an RSS or Atom feed and return its items."""
    return await _run_tool("fetch_rss", t_feeds.handle_fetch_rss(feed_url, _state(ctx)))


@mcp.tool()
async def check_robots(url: str, ctx: Context) -> object:
    """Check whether robots.txt allows fetching a URL, and show the site's rules."""
    return await _run_tool("check_robots", t_policy.handle_check_robots(url, _state(ctx)))


@mcp.tool()
async def get_data_source(source_id: str, ctx: Context) -> object:
    """Look up where and when a piece of fetched data was captured."""
    return await _run_tool(
        "get_data_source", t_provenance.handle_get_data_source(source_id, _state(ctx))
    )


@mcp.tool()
async def list_data_sources(ctx: Context, url: str | None = None) -> object:
    """List recorded data sources, optionally only those captured from one URL."""
    return await _run_tool(
        "list_data_sources", t_provenance.handle_list_data_sources(url, _state(ctx))
    )


@mcp.tool()
async def cache_stats(ctx: Context) -> object:
    """Report the size and contents of the page cache."""
    return await _run_tool("cache_stats", t_policy.handle_cache_stats(_state(ctx)))


@mcp.tool()
async def clear_cache(ctx: Context, url: str | None = None) -> object:
    """Drop one URL from the page cache, or the whole cache when no URL is given."""
    return await _run_tool("clear_cache", t_policy.handle_clear_cache(url, _state(ctx)))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
