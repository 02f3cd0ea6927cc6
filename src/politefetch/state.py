"""Runtime state shared by the MCP tool handlers.

The server lifespan builds one AppState around a single ScraperService, so
every tool call sees the same cache, robots policies, rate-limit clock and
provenance log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from politefetch.config import Settings
    from politefetch.service import ScraperService


@dataclass
class AppState:
    settings: Settings
    # Owned by the lifespan; closed on shutdown
    http_client: httpx.AsyncClient | None = None
    # None until the lifespan has wired it
    service: ScraperService | None = None
