"""Single-request HTTP fetcher.

All network I/O goes through one HttpFetcher instance. It receives an
httpx.AsyncClient via constructor injection; the server lifespan owns the
client lifecycle. Redirects are followed here, one hop at a time, so the hop
limit is ours rather than the client's.
"""

from __future__ import annotations

from urllib.parse import urljoin

import httpx
import structlog

from politefetch.config import FetcherSettings
from politefetch.errors import ErrorKind, FetchError, classify_error, kind_for_status

log = structlog.get_logger()

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={
            "User-Agent": settings.user_agent,
            "Accept": _ACCEPT,
            "Accept-Language": "en-US,en;q=0.5",
        },
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


class HttpFetcher:
    """GET a URL and return its body text, following redirects up to a hop limit."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings | None = None) -> None:
        self._client = client
        self._settings = settings or FetcherSettings()

    @property
    def user_agent(self) -> str:
        return self._settings.user_agent

    async def fetch(self, url: str, timeout: float | None = None) -> str:
        """Fetch ``url`` and return the decoded response body.

        Raises FetchError for timeouts, transport failures, redirect loops
        and any final status outside 2xx. The error kind is already
        classified so callers can decide whether to retry.
        """
        max_redirects = self._settings.max_redirects
        request_timeout = timeout if timeout is not None else self._settings.timeout_seconds
        headers = {"User-Agent": self._settings.user_agent}
        current_url = url

        try:
            for hop in range(max_redirects + 1):
                response = await self._client.get(
                    current_url, headers=headers, timeout=request_timeout
                )

                if response.is_redirect and "location" in response.headers:
                    if hop == max_redirects:
                        raise FetchError(
                            kind=ErrorKind.TOO_MANY_REDIRECTS,
                            message=f"More than {max_redirects} redirects fetching {url}",
                            suggestion="The URL redirects in a loop or through a very long chain.",
                            recoverable=False,
                            status_code=response.status_code,
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    log.debug("fetch_redirect", url=url, hop=hop + 1, location=current_url)
                    continue

                if not response.is_success:
                    kind = kind_for_status(response.status_code)
                    raise FetchError(
                        kind=kind,
                        message=f"HTTP {response.status_code} fetching {url}",
                        suggestion="The site rejected the request or is temporarily unavailable.",
                        recoverable=kind is not ErrorKind.CLIENT_ERROR,
                        status_code=response.status_code,
                    )

                log.debug(
                    "fetch_complete",
                    url=url,
                    final_url=current_url,
                    status_code=response.status_code,
                    content_length=len(response.text),
                )
                return response.text

        except FetchError:
            raise
        except httpx.HTTPError as exc:
            kind = classify_error(exc)
            message = (
                f"Request timeout fetching {url}"
                if kind is ErrorKind.TIMEOUT
                else f"Network error fetching {url}: {exc}"
            )
            raise FetchError(
                kind=kind,
                message=message,
                suggestion="The site may be unreachable or temporarily unavailable.",
                recoverable=kind is not ErrorKind.INVALID_URL,
            ) from exc

        # Unreachable but satisfies the type checker
        raise FetchError(
            kind=ErrorKind.TOO_MANY_REDIRECTS,
            message="Redirect loop",
            recoverable=False,
        )
