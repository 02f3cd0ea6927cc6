"""Streamable HTTP transport for the MCP server, with a small security layer."""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from politefetch.config import Settings

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset({"2025-11-25", "2025-06-18", "2025-03-26"})
HEALTH_PATH = "/healthz"
_LOCAL_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$")


class HTTPSecurityMiddleware:
    """Pure ASGI middleware guarding the HTTP transport.

    ``/healthz`` is answered directly and skips every check. All other
    HTTP requests must pass, in order: bearer key (when enabled), a
    browser ``Origin`` that points at this machine, and a supported
    ``MCP-Protocol-Version`` when the header is sent.

    Pure ASGI rather than BaseHTTPMiddleware so SSE streams are not buffered.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key or ""

    def _authorised(self, headers: Headers) -> bool:
        scheme, _, token = headers.get("authorization", "").partition(" ")
        if scheme != "Bearer" or not token or not self.auth_key:
            return False
        return secrets.compare_digest(token, self.auth_key)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope.get("path") == HEALTH_PATH:
            await JSONResponse({"status": "ok"})(scope, receive, send)
            return

        headers = Headers(scope=scope)

        if self.auth_enabled and not self._authorised(headers):
            await Response("Unauthorized", status_code=401)(scope, receive, send)
            return

        # Browsers always send Origin; rejecting foreign ones blocks DNS rebinding
        origin = headers.get("origin", "")
        if origin and not _LOCAL_ORIGIN.match(origin):
            await Response("Forbidden", status_code=403)(scope, receive, send)
            return

        proto_version = headers.get("mcp-protocol-version", "")
        if proto_version and proto_version not in SUPPORTED_PROTOCOL_VERSIONS:
            await Response(
                f"Unsupported protocol version: {proto_version}",
                status_code=400,
            )(scope, receive, send)
            return

        await self.app(scope, receive, send)


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Serve the MCP app over Streamable HTTP until interrupted."""
    http_log = log.bind(transport="http", host=settings.server.host, port=settings.server.port)

    auth_key = settings.server.auth_key or None
    if settings.server.auth_enabled and auth_key is None:
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("http_auth_key_generated", auth_key=auth_key)
    elif not settings.server.auth_enabled:
        http_log.warning("http_auth_disabled")

    app = HTTPSecurityMiddleware(
        mcp.streamable_http_app(),
        auth_enabled=settings.server.auth_enabled,
        auth_key=auth_key,
    )
    http_log.info("http_server_starting")
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # structlog owns logging
    )
