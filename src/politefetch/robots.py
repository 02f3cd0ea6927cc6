"""robots.txt policy resolver with a per-origin cache.

The policy model is intentionally small: a group applies to us when one of
its user-agent tokens is ``*`` or contains ``bot``; ``Disallow: /`` blocks the
whole origin, other ``Disallow`` values are path prefixes, and
``Crawl-delay`` feeds the rate limiter. Fetch failures of any kind fail open.

Rules are cached per origin for the lifetime of the resolver. The cache is a
bounded LRU so the number of remembered origins has a ceiling.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from politefetch.errors import FetchError
from politefetch.models.robots import RobotsDecision, RobotsRules

if TYPE_CHECKING:
    from politefetch.protocols import FetcherProtocol

log = structlog.get_logger()


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL, lowercased; empty if it has no host."""
    parsed = urlparse(url)
    if not parsed.netloc:
        return ""
    scheme = (parsed.scheme or "https").lower()
    return f"{scheme}://{parsed.netloc.lower()}"


def normalise_origin(domain_or_origin: str) -> str:
    """Accept ``example.com`` or ``https://example.com[/...]`` and return the origin."""
    value = domain_or_origin.strip()
    if "://" not in value:
        value = f"https://{value}"
    return origin_of(value)


def _agent_applies(agent: str) -> bool:
    agent = agent.strip().lower()
    return agent == "*" or "bot" in agent


def parse_robots_txt(content: str) -> RobotsRules:
    """Parse robots.txt text into the rules that apply to this crawler."""
    rules = RobotsRules()
    group_applies = False
    previous_was_agent = False

    for raw_line in content.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue

        field, value = line.split(":", 1)
        field = field.strip().lower()
        value = value.strip()

        if field == "user-agent":
            # Consecutive User-agent lines share one group
            if previous_was_agent:
                group_applies = group_applies or _agent_applies(value)
            else:
                group_applies = _agent_applies(value)
            previous_was_agent = True
            continue

        previous_was_agent = False
        if not group_applies:
            continue

        if field == "disallow":
            if value == "/":
                rules.allowed = False
            elif value and value not in rules.disallowed_paths:
                rules.disallowed_paths.append(value)
        elif field == "crawl-delay":
            try:
                rules.crawl_delay_seconds = max(float(value), 0.0)
            except ValueError:
                rules.crawl_delay_seconds = 0.0

    return rules


class RobotsPolicyResolver:
    """Resolve and cache robots.txt rules per origin."""

    def __init__(
        self,
        fetcher: FetcherProtocol,
        timeout_seconds: float = 5.0,
        max_entries: int = 1024,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._fetcher = fetcher
        self.timeout_seconds = timeout_seconds
        self.max_entries = max_entries
        self._cache: OrderedDict[str, RobotsRules] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        """Forget every cached policy."""
        self._cache.clear()

    def cached(self, origin: str) -> RobotsRules | None:
        return self._cache.get(origin)

    async def check_policy(self, origin: str) -> RobotsRules:
        """Return rules for ``origin``, fetching robots.txt on first use."""
        origin = normalise_origin(origin)
        cached = self._cache.get(origin)
        if cached is not None:
            self._cache.move_to_end(origin)
            return cached

        rules = await self._fetch_rules(origin)
        self._cache[origin] = rules
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
        return rules

    async def _fetch_rules(self, origin: str) -> RobotsRules:
        robots_url = f"{origin}/robots.txt"
        try:
            content = await self._fetcher.fetch(robots_url, timeout=self.timeout_seconds)
        except FetchError as exc:
            log.debug(
                "robots_fetch_failed",
                robots_url=robots_url,
                error_type=exc.kind,
                message=exc.message,
            )
            return RobotsRules()

        rules = parse_robots_txt(content)
        log.info(
            "robots_loaded",
            origin=origin,
            allowed=rules.allowed,
            disallowed_paths=len(rules.disallowed_paths),
            crawl_delay_seconds=rules.crawl_delay_seconds,
        )
        return rules

    async def is_allowed(self, url: str) -> RobotsDecision:
        """Decide whether ``url`` may be fetched under its origin's robots policy."""
        origin = origin_of(url)
        if not origin:
            return RobotsDecision(allowed=True)

        rules = await self.check_policy(origin)
        if not rules.allowed:
            return RobotsDecision(
                allowed=False,
                reason="Blocked by robots.txt (disallow all)",
                crawl_delay_seconds=rules.crawl_delay_seconds,
            )

        path = urlparse(url).path or "/"
        for prefix in rules.disallowed_paths:
            if path.startswith(prefix):
                return RobotsDecision(
                    allowed=False,
                    reason=f"Blocked by robots.txt ({prefix})",
                    crawl_delay_seconds=rules.crawl_delay_seconds,
                )

        return RobotsDecision(allowed=True, crawl_delay_seconds=rules.crawl_delay_seconds)
