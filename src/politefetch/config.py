"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (POLITEFETCH__RETRY__MAX_RETRIES=5)
  2. politefetch.yaml       (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_USER_AGENT = "PoliteFetchBot/1.0 (+https://github.com/politefetch/politefetch)"
DEFAULT_NEWS_SEARCH_URL = (
    "https://news.google.com/rss/search?q={query}&hl=en-US&gl=US&ceid=US:en"
)


def _find_config_file() -> str | None:
    """Return the path of the first politefetch.yaml found, or None."""
    candidates = [
        Path("politefetch.yaml"),
        Path(platformdirs.user_config_dir("politefetch")) / "politefetch.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""


class FetcherSettings(BaseModel):
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = Field(default=15.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)


class RetrySettings(BaseModel):
    max_retries: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    # 4xx responses other than 429 are not retried unless this is set
    retry_client_errors: bool = False


class RobotsSettings(BaseModel):
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_entries: int = Field(default=1024, ge=1)


class RateLimitSettings(BaseModel):
    min_interval_seconds: float = Field(default=2.0, ge=0)
    max_origins: int = Field(default=1024, ge=1)


class CacheSettings(BaseModel):
    ttl_minutes: float = Field(default=30.0, ge=0)
    max_entries: int = Field(default=500, ge=1)
    sweep_interval_minutes: float = Field(default=10.0, gt=0)


class RegistrySettings(BaseModel):
    max_entries: int = Field(default=1000, ge=1)
    preview_chars: int = Field(default=200, ge=0)


class NewsSettings(BaseModel):
    search_url_template: str = DEFAULT_NEWS_SEARCH_URL
    default_limit: int = Field(default=20, ge=1)
    default_source: str = "Google News"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: POLITEFETCH__SERVER__PORT=9090
        env_prefix="POLITEFETCH__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    retry: RetrySettings = RetrySettings()
    robots: RobotsSettings = RobotsSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    cache: CacheSettings = CacheSettings()
    registry: RegistrySettings = RegistrySettings()
    news: NewsSettings = NewsSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
