"""Tool handlers for scrape_website and scrape_website_pages.

Receive AppState, validate input, run the ScraperService and return
JSON-safe dicts. No MCP or FastMCP imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from politefetch.errors import ErrorKind, FetchError
from politefetch.models.tools import ScrapePagesInput, ScrapeWebsiteInput

if TYPE_CHECKING:
    from politefetch.models.results import PageResult
    from politefetch.state import AppState


def _page_output(result: PageResult, include_raw: bool) -> dict:
    exclude = None if include_raw else {"data"}
    return result.model_dump(mode="json", exclude=exclude)


async def handle(url: str, force_refresh: bool, include_raw: bool, state: AppState) -> dict:
    """Handle a scrape_website tool call."""
    log = structlog.get_logger().bind(tool="scrape_website", url=url)
    log.info("handler_called", force_refresh=force_refresh)

    try:
        validated = ScrapeWebsiteInput(
            url=url, force_refresh=force_refresh, include_raw=include_raw
        )
    except ValueError as exc:
        raise FetchError(
            kind=ErrorKind.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide an absolute http(s) URL of at most 2048 characters.",
            recoverable=False,
        ) from exc

    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    result = await state.service.scrape_website(
        validated.url, force_refresh=validated.force_refresh
    )
    return _page_output(result, validated.include_raw)


async def handle_pages(
    base_url: str,
    pages: list[str] | None,
    include_raw: bool,
    state: AppState,
) -> dict:
    """Handle a scrape_website_pages tool call."""
    log = structlog.get_logger().bind(tool="scrape_website_pages", base_url=base_url)
    log.info("handler_called", page_count=len(pages) if pages is not None else None)

    try:
        validated = ScrapePagesInput(base_url=base_url, pages=pages, include_raw=include_raw)
    except ValueError as exc:
        raise FetchError(
            kind=ErrorKind.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide an absolute http(s) base URL and at most 25 page paths.",
            recoverable=False,
        ) from exc

    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    results = await state.service.scrape_website_pages(validated.base_url, validated.pages)
    return {
        "base_url": validated.base_url,
        "pages": [_page_output(item, validated.include_raw) for item in results],
    }
