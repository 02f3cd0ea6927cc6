from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class DataType(StrEnum):
    HTML = "html"
    RSS = "rss"
    NEWS_SEARCH = "news_search"


class DataSourceEntry(BaseModel):
    """Provenance record tying derived data back to the URL it came from."""

    id: str  # "src_<epoch-ms>_<random suffix>"
    url: str
    data_type: DataType
    captured_at: datetime
    preview: str  # First characters of the serialised data
