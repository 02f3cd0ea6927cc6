"""Bounded exponential backoff around a fetch operation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from politefetch.errors import NON_RETRYABLE_KINDS, ErrorKind, FetchError, classify_error

log = structlog.get_logger()

T = TypeVar("T")


class RetryController:
    """Run an async operation up to ``max_retries`` times.

    Attempt ``n`` (0-based) that fails is followed by a wait of
    ``2**n * backoff_base_seconds`` before the next one; there is no wait
    after the last attempt. Errors of a non-retryable kind end the loop at
    once unless ``retry_client_errors`` is set.
    """

    def __init__(
        self,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        retry_client_errors: bool = False,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.retry_client_errors = retry_client_errors
        self._sleep = sleep_fn or asyncio.sleep

    def backoff_delay(self, attempt: int) -> float:
        return (2**attempt) * self.backoff_base_seconds

    def is_retryable(self, kind: ErrorKind) -> bool:
        if kind is ErrorKind.CLIENT_ERROR and self.retry_client_errors:
            return True
        return kind not in NON_RETRYABLE_KINDS

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        max_retries: int | None = None,
    ) -> T:
        """Call ``operation(attempt)`` until it succeeds or attempts run out.

        Raises the last FetchError when every attempt failed. Exceptions
        that are not FetchError are wrapped into one with a classified kind.
        """
        attempts = max_retries if max_retries is not None else self.max_retries
        attempts = max(attempts, 1)
        attempt = 0

        while True:
            try:
                return await operation(attempt)
            except FetchError as exc:
                error = exc
            except Exception as exc:
                error = FetchError(
                    kind=classify_error(exc),
                    message=str(exc) or type(exc).__name__,
                    recoverable=True,
                )
                error.__cause__ = exc

            if not self.is_retryable(error.kind):
                log.info(
                    "fetch_retry_skipped",
                    attempt=attempt + 1,
                    error_type=error.kind,
                    reason="non_retryable",
                )
                raise error

            if attempt >= attempts - 1:
                raise error

            delay = self.backoff_delay(attempt)
            log.info(
                "fetch_retry_scheduled",
                attempt=attempt + 1,
                max_attempts=attempts,
                delay_seconds=delay,
                error_type=error.kind,
            )
            await self._sleep(delay)
            attempt += 1
