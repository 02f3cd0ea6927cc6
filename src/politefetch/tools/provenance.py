"""Tool handlers for data source (provenance) lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from politefetch.errors import ErrorKind, FetchError

if TYPE_CHECKING:
    from politefetch.state import AppState


async def handle_get_data_source(source_id: str, state: AppState) -> dict:
    """Return one provenance record by id."""
    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    entry = state.service.get_data_source(source_id.strip())
    if entry is None:
        raise FetchError(
            kind=ErrorKind.SOURCE_NOT_FOUND,
            message=f"Data source '{source_id}' not found.",
            suggestion=(
                "Only the most recent sources are retained; "
                "call list_data_sources to see what is available."
            ),
            recoverable=False,
        )
    return entry.model_dump(mode="json")


async def handle_list_data_sources(url: str | None, state: AppState) -> dict:
    """List provenance records, optionally only those captured from ``url``."""
    if state.service is None:
        raise RuntimeError("ScraperService not initialized")

    if url:
        entries = state.service.get_data_sources_for_url(url)
    else:
        entries = state.service.get_all_data_sources()
    return {
        "url": url or None,
        "count": len(entries),
        "sources": [entry.model_dump(mode="json") for entry in entries],
    }
