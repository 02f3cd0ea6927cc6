from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from politefetch.errors import ErrorKind
from politefetch.models.page import FeedItem, ParsedPage


class ScrapeResult(BaseModel):
    """Outcome of a single scrape. ``success`` tags which fields are set.

    Success: ``data``, ``cached`` and, for network fetches, ``source_id`` and
    ``fetched_at``. Failure: ``error`` and ``error_type``.
    """

    success: bool
    url: str
    data: str | None = None
    cached: bool = False
    source_id: str | None = None
    fetched_at: datetime | None = None
    error: str | None = None
    error_type: ErrorKind | None = None


class PageResult(ScrapeResult):
    parsed: ParsedPage | None = None


class PageBatchItem(PageResult):
    page: str


class FeedResult(BaseModel):
    success: bool
    feed_url: str
    items: list[FeedItem] = []
    source_id: str | None = None
    fetched_at: datetime | None = None
    error: str | None = None
    error_type: ErrorKind | None = None


class NewsSearchResult(BaseModel):
    success: bool
    query: str
    items: list[FeedItem] = []
    source_id: str | None = None
    fetched_at: datetime | None = None
    error: str | None = None
    error_type: ErrorKind | None = None
