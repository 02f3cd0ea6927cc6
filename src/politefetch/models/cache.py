from __future__ import annotations

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Fetched content for a single URL."""

    url: str
    content: str  # Raw response body
    stored_at: float  # Cache clock reading (monotonic seconds) at write time
