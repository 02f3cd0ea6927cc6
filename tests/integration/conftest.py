"""Integration test fixtures.

Provides a fully wired AppState whose ScraperService runs on a fake clock:
rate-limit waits and retry backoff are recorded instead of slept. HTTP is
mocked per test with respx. Shared fixtures come from tests/conftest.py.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest

from politefetch.config import Settings
from politefetch.service import ScraperService
from politefetch.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from conftest import FakeClock


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Forces stdio transport and runs from an empty directory so no local
    politefetch.yaml is picked up.
    """
    env = os.environ.copy()
    env["POLITEFETCH__SERVER__TRANSPORT"] = "stdio"
    env["POLITEFETCH__LOGGING__LEVEL"] = "WARNING"
    env["HOME"] = str(tmp_path)
    return env


@pytest.fixture()
async def app_state(settings: Settings, clock: FakeClock) -> AsyncIterator[AppState]:
    """Full AppState with a ScraperService on the fake clock."""
    async with httpx.AsyncClient() as client:
        service = ScraperService.from_settings(
            settings, client, sleep_fn=clock.sleep, clock_fn=clock
        )
        yield AppState(settings=settings, http_client=client, service=service)


@pytest.fixture()
def service(app_state: AppState) -> ScraperService:
    assert app_state.service is not None
    return app_state.service
