from __future__ import annotations

from pydantic import BaseModel


class RobotsRules(BaseModel):
    """Robots policy for one origin, reduced to what the fetcher honours."""

    allowed: bool = True  # False when an applicable group has "Disallow: /"
    disallowed_paths: list[str] = []
    crawl_delay_seconds: float = 0.0


class RobotsDecision(BaseModel):
    """Result of checking a single URL against its origin's robots policy."""

    allowed: bool
    reason: str | None = None
    crawl_delay_seconds: float = 0.0
