"""Background scheduler coroutines."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from politefetch.state import AppState

log = structlog.get_logger()


def _sweep_once(state: AppState) -> None:
    if state.service is None:
        return
    removed = state.service.cache.purge_expired()
    if removed:
        log.info("cache_sweep_complete", removed=removed)
    else:
        log.debug("cache_sweep_complete", removed=0)


async def run_cache_sweep_scheduler(state: AppState) -> None:
    """Purge expired cache entries at startup and (HTTP mode) on the configured interval."""
    _sweep_once(state)

    if state.settings.server.transport != "http":
        return

    # HTTP long-running mode: repeat on the configured interval.
    interval_seconds = state.settings.cache.sweep_interval_minutes * 60
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            _sweep_once(state)
        except Exception:
            log.warning("cache_sweep_error", exc_info=True)
