from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

_MAX_URL_LENGTH = 2048


def _check_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("url must not be empty")
    if len(value) > _MAX_URL_LENGTH:
        raise ValueError(f"url must be at most {_MAX_URL_LENGTH} characters")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"url must be an absolute http(s) URL: {value!r}")
    return value


class ScrapeWebsiteInput(BaseModel):
    url: str
    force_refresh: bool = False
    include_raw: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)


class ScrapePagesInput(BaseModel):
    base_url: str
    pages: list[str] | None = Field(default=None, max_length=25)
    include_raw: bool = False

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        return _check_url(v)


class SearchNewsInput(BaseModel):
    query: str
    limit: int | None = Field(default=None, ge=1, le=100)

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be empty")
        if len(v) > 500:
            raise ValueError("query must be at most 500 characters")
        return v


class FetchRssInput(BaseModel):
    feed_url: str

    @field_validator("feed_url")
    @classmethod
    def validate_feed_url(cls, v: str) -> str:
        return _check_url(v)


class CheckRobotsInput(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)
