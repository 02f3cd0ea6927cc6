"""Protocol interfaces for swappable components.

ScraperService and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight fakes (e.g. a fetcher that counts calls)
- Future backends (e.g. a Redis cache shared between workers) to be swapped
  without changing the orchestrator
"""

from __future__ import annotations

from typing import Protocol


class CacheProtocol(Protocol):
    """Interface for the fetched-content cache."""

    def get(self, url: str) -> str | None: ...

    def set(self, url: str, content: str) -> None: ...

    def clear(self, url: str | None = None) -> None: ...

    def purge_expired(self) -> int: ...

    def stats(self) -> dict: ...


class FetcherProtocol(Protocol):
    """Interface for the single-request HTTP fetcher."""

    async def fetch(self, url: str, timeout: float | None = None) -> str: ...
