"""Tool handlers for search_news and fetch_rss."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from politefetch.errors import ErrorKind, FetchError
from politefetch.models.tools import FetchRssInput, SearchNewsInput

if TYPE_CHECKING:
    from politefetch.state import AppState


async def handle_search_news(query: str, limit: int | None, state: AppState) -> dict:
    """Handle a search_news tool call."""
    log = structlog.get_logger().bind(tool="search_news", query=query)
    log.info("handler_called", limit=limit)

    try:
        validated = SearchNewsInput(query=query, limit=limit)
    except ValueError as exc:
        raise FetchError(
            kind=ErrorKind.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a non-empty query (max 500 chars) and a limit between 1 and 100.",
            recoverable=False,
        ) from exc

    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    result = await state.service.search_news(validated.query, limit=validated.limit)
    return result.model_dump(mode="json")


async def handle_fetch_rss(feed_url: str, state: AppState) -> dict:
    """Handle a fetch_rss tool call."""
    log = structlog.get_logger().bind(tool="fetch_rss", feed_url=feed_url)
    log.info("handler_called")

    try:
        validated = FetchRssInput(feed_url=feed_url)
    except ValueError as exc:
        raise FetchError(
            kind=ErrorKind.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide the absolute http(s) URL of an RSS or Atom feed.",
            recoverable=False,
        ) from exc

    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    result = await state.service.fetch_rss(validated.feed_url)
    return result.model_dump(mode="json")
