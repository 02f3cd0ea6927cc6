from __future__ import annotations

from politefetch.models.cache import CacheEntry
from politefetch.models.page import FeedItem, Heading, Link, ParsedPage
from politefetch.models.registry import DataSourceEntry, DataType
from politefetch.models.results import (
    FeedResult,
    NewsSearchResult,
    PageBatchItem,
    PageResult,
    ScrapeResult,
)
from politefetch.models.robots import RobotsDecision, RobotsRules
from politefetch.models.tools import (
    CheckRobotsInput,
    FetchRssInput,
    ScrapePagesInput,
    ScrapeWebsiteInput,
    SearchNewsInput,
)

__all__ = [
    # cache
    "CacheEntry",
    # robots
    "RobotsRules",
    "RobotsDecision",
    # registry
    "DataType",
    "DataSourceEntry",
    # parsed content
    "Heading",
    "Link",
    "ParsedPage",
    "FeedItem",
    # results
    "ScrapeResult",
    "PageResult",
    "PageBatchItem",
    "FeedResult",
    "NewsSearchResult",
    # tools
    "ScrapeWebsiteInput",
    "ScrapePagesInput",
    "SearchNewsInput",
    "FetchRssInput",
    "CheckRobotsInput",
]
