"""Tool handlers for robots.txt introspection and cache controls."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from politefetch.errors import ErrorKind, FetchError
from politefetch.models.tools import CheckRobotsInput
from politefetch.robots import origin_of

if TYPE_CHECKING:
    from politefetch.state import AppState


async def handle_check_robots(url: str, state: AppState) -> dict:
    """Report whether ``url`` may be fetched and the rules of its origin."""
    log = structlog.get_logger().bind(tool="check_robots", url=url)
    log.info("handler_called")

    try:
        validated = CheckRobotsInput(url=url)
    except ValueError as exc:
        raise FetchError(
            kind=ErrorKind.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide an absolute http(s) URL.",
            recoverable=False,
        ) from exc

    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    decision = await state.service.is_allowed(validated.url)
    origin = origin_of(validated.url)
    rules = await state.service.check_robots_txt(origin)
    return {
        "url": validated.url,
        "origin": origin,
        "decision": decision.model_dump(mode="json"),
        "rules": rules.model_dump(mode="json"),
    }


async def handle_cache_stats(state: AppState) -> dict:
    if state.service is None:
        raise RuntimeError("ScraperService not initialized")
    return state.service.get_cache_stats()


async def handle_clear_cache(url: str | None, state: AppState) -> dict:
    if state.service is None:
        raise RuntimeError("ScraperService not initialized")
    state.service.clear_cache(url or None)
    return {"cleared": url or "all", "size": state.service.get_cache_stats()["size"]}
