"""In-memory content cache with read-time TTL and an LRU size ceiling.

Entries expire ``ttl_seconds`` after they were stored. Expiry is checked when
an entry is read, and expired entries are removed at that point; the
background sweep in :mod:`politefetch.schedulers` calls ``purge_expired`` so
entries that are never read again do not linger. The store never holds more
than ``max_entries`` URLs; on overflow the least recently used URL is evicted.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable

import structlog

from politefetch.models.cache import CacheEntry

log = structlog.get_logger()


class ContentCache:
    """URL → content store implementing CacheProtocol."""

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock_fn: Callable[[], float] | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock_fn or time.monotonic
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, url: str) -> str | None:
        """Return cached content, or ``None`` on a miss or an expired entry."""
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[url]
            log.debug("cache_expired", url=url)
            return None
        self._entries.move_to_end(url)
        return entry.content

    def set(self, url: str, content: str) -> None:
        self._entries[url] = CacheEntry(url=url, content=content, stored_at=self._clock())
        self._entries.move_to_end(url)
        while len(self._entries) > self.max_entries:
            evicted_url, _ = self._entries.popitem(last=False)
            log.debug("cache_evicted", url=evicted_url, reason="max_entries")

    def clear(self, url: str | None = None) -> None:
        """Drop one URL, or everything when ``url`` is ``None``."""
        if url is None:
            self._entries.clear()
        else:
            self._entries.pop(url, None)

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self._clock()
        expired = [url for url, entry in self._entries.items() if self._is_expired(entry, now)]
        for url in expired:
            del self._entries[url]
        return len(expired)

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "urls": list(self._entries.keys()),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
        }
