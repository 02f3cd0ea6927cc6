"""Shared test fixtures for the politefetch test suite."""

from __future__ import annotations

import asyncio

import pytest

from politefetch.config import Settings


class FakeClock:
    """Deterministic stand-in for time.monotonic / asyncio.sleep.

    ``sleep`` records the requested delay and advances the clock by it, so
    rate-limit and backoff waits complete instantly but stay observable.
    """

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)  # still yield to the event loop like a real sleep


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    """Default settings (env and any politefetch.yaml still apply)."""
    return Settings()
