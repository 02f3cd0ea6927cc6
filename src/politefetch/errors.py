from __future__ import annotations

from enum import StrEnum

import httpx


class ErrorKind(StrEnum):
    ROBOTS_BLOCKED = "robots_blocked"
    TIMEOUT = "timeout"
    DNS_ERROR = "dns_error"
    CONNECTION_REFUSED = "connection_refused"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    RATE_LIMITED = "rate_limited"
    SEARCH_FAILED = "search_failed"
    UNKNOWN = "unknown"
    INVALID_URL = "invalid_url"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    INVALID_INPUT = "invalid_input"
    SOURCE_NOT_FOUND = "source_not_found"


# Kinds where repeating the same request cannot succeed.
NON_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.CLIENT_ERROR,
        ErrorKind.INVALID_URL,
        ErrorKind.TOO_MANY_REDIRECTS,
        ErrorKind.INVALID_INPUT,
    }
)

_DNS_PATTERNS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo failed",
    "enotfound",
)
_REFUSED_PATTERNS = ("connection refused", "econnrefused", "connect call failed")


class FetchError(Exception):
    """Raised for every expected failure while fetching or serving content.

    Inside the service it carries the error kind from the fetcher through the
    retry controller to the orchestrator, which turns it into a failed result.
    Tool handlers raise it for invalid input; server.py serialises it into
    the MCP error response.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.kind,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a non-success HTTP status to an error kind. 429 wins over generic 4xx."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify an exception raised while fetching into an :class:`ErrorKind`.

    Typed httpx exceptions are checked first; anything else falls back to
    substring matching on the message.
    """
    if isinstance(exc, FetchError):
        return exc.kind
    if isinstance(exc, httpx.TimeoutException | TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return kind_for_status(exc.response.status_code)
    if isinstance(exc, httpx.TooManyRedirects):
        return ErrorKind.TOO_MANY_REDIRECTS
    if isinstance(exc, httpx.InvalidURL | httpx.UnsupportedProtocol):
        return ErrorKind.INVALID_URL

    message = str(exc).lower()
    if "timeout" in message or "timed out" in message:
        return ErrorKind.TIMEOUT
    if any(pattern in message for pattern in _DNS_PATTERNS):
        return ErrorKind.DNS_ERROR
    if any(pattern in message for pattern in _REFUSED_PATTERNS):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, httpx.ConnectError):
        return ErrorKind.CONNECTION_REFUSED
    if "http 429" in message:
        return ErrorKind.RATE_LIMITED
    if "http 4" in message:
        return ErrorKind.CLIENT_ERROR
    if "http 5" in message:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN
