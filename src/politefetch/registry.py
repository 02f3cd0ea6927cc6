"""Data source registry: a bounded provenance log.

Every piece of fetched or derived data is registered with the URL it came
from, so downstream features can cite where a fact was grounded. The log is
a FIFO ring buffer; once ``max_entries`` is reached the oldest record is
dropped before the new one is appended.
"""

from __future__ import annotations

import json
import random
import string
import time
from collections import deque
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel

from politefetch.models.registry import DataSourceEntry, DataType

log = structlog.get_logger()

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_source_id() -> str:
    """``src_<epoch-ms>_<9 base36 chars>``; the suffix separates same-millisecond ids."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"src_{int(time.time() * 1000)}_{suffix}"


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list | tuple):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _jsonable(value) for key, value in data.items()}
    return data


def build_preview(data: Any, limit: int) -> str:
    if isinstance(data, str):
        return data[:limit]
    return json.dumps(_jsonable(data), ensure_ascii=False, default=str)[:limit]


class DataSourceRegistry:
    """Append-only provenance log with a fixed entry ceiling."""

    def __init__(self, max_entries: int = 1000, preview_chars: int = 200) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.preview_chars = preview_chars
        self._entries: deque[DataSourceEntry] = deque()
        self._by_id: dict[str, DataSourceEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, url: str, data_type: DataType | str, data: Any) -> str:
        """Record ``data`` as captured from ``url`` and return the new entry id."""
        source_id = generate_source_id()
        while source_id in self._by_id:
            source_id = generate_source_id()

        entry = DataSourceEntry(
            id=source_id,
            url=url,
            data_type=DataType(data_type),
            captured_at=datetime.now(UTC),
            preview=build_preview(data, self.preview_chars),
        )

        if len(self._entries) >= self.max_entries:
            oldest = self._entries.popleft()
            self._by_id.pop(oldest.id, None)

        self._entries.append(entry)
        self._by_id[source_id] = entry
        log.debug("data_source_registered", source_id=source_id, url=url, data_type=entry.data_type)
        return source_id

    def lookup(self, source_id: str) -> DataSourceEntry | None:
        return self._by_id.get(source_id)

    def lookup_by_url(self, url: str) -> list[DataSourceEntry]:
        return [entry for entry in self._entries if entry.url == url]

    def all(self) -> list[DataSourceEntry]:
        """Every retained entry, oldest first."""
        return list(self._entries)
