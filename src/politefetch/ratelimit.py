"""Per-origin politeness gate: a minimum interval between request starts."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()


class DomainRateLimiter:
    """Enforce ``max(min_interval, crawl_delay)`` between requests to one origin.

    Each origin has its own ``asyncio.Lock``. A caller holds the lock while it
    reads the last request time, sleeps out the remainder of the interval and
    stamps the new request time, so concurrent callers for the same origin
    are admitted one at a time. Different origins never wait on each other.

    At most ``max_origins`` origins are remembered. Past that, the least
    recently requested origins are forgotten once their interval has run out
    and no caller holds their lock; an origin still inside its interval is
    kept so forgetting it can never shorten a wait.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock_fn: Callable[[], float] | None = None,
        max_origins: int = 1024,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        if max_origins < 1:
            raise ValueError("max_origins must be >= 1")
        self.min_interval_seconds = min_interval_seconds
        self.max_origins = max_origins
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock_fn or time.monotonic
        self._last_request: OrderedDict[str, float] = OrderedDict()
        self._intervals: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._last_request)

    def interval_for(self, crawl_delay_seconds: float = 0.0) -> float:
        return max(self.min_interval_seconds, crawl_delay_seconds)

    def last_request_at(self, origin: str) -> float | None:
        return self._last_request.get(origin)

    async def throttle(self, origin: str, crawl_delay_seconds: float = 0.0) -> None:
        """Wait until ``origin`` may be requested again, then record the request."""
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            interval = self.interval_for(crawl_delay_seconds)
            last = self._last_request.get(origin)
            if last is not None:
                remaining = interval - (self._clock() - last)
                if remaining > 0:
                    log.debug("rate_limit_wait", origin=origin, wait_seconds=round(remaining, 3))
                    await self._sleep(remaining)
            self._last_request[origin] = self._clock()
            self._last_request.move_to_end(origin)
            self._intervals[origin] = interval
            self._prune()

    def _prune(self) -> None:
        excess = len(self._last_request) - self.max_origins
        if excess <= 0:
            return

        now = self._clock()
        for origin, last in list(self._last_request.items()):
            if excess <= 0:
                break
            lock = self._locks.get(origin)
            if lock is not None and lock.locked():
                continue
            if now - last < self._intervals.get(origin, 0.0):
                continue
            del self._last_request[origin]
            self._intervals.pop(origin, None)
            self._locks.pop(origin, None)
            excess -= 1
            log.debug("rate_limit_origin_evicted", origin=origin)
