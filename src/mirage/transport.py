"""HTTP serving and the admin security middleware."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import JSONResponse

from mirage.errors import ErrorCode, MirageError

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

    from mirage.config import Settings

log = structlog.get_logger()

ADMIN_PREFIX = "/admin"


class AdminAuthMiddleware:
    """Pure ASGI middleware guarding ``/admin`` routes.

    1. No admin key configured: the admin surface does not exist (404).
    2. Otherwise the request needs ``Authorization: Bearer <admin_key>`` (401).

    Every other path passes straight through.
    """

    def __init__(self, app: ASGIApp, *, admin_key: str | None = None) -> None:
        self.app = app
        self.admin_key = admin_key or None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self._is_admin(scope.get("path", "")):
            if self.admin_key is None:
                await JSONResponse({"error": "Not found"}, status_code=404)(scope, receive, send)
                return

            auth_header = Headers(scope=scope).get("authorization", "")
            if not auth_header.startswith("Bearer ") or not secrets.compare_digest(
                auth_header[7:], self.admin_key
            ):
                log.warning("admin_auth_rejected", path=scope.get("path"))
                error = MirageError(
                    code=ErrorCode.UNAUTHORIZED,
                    message="Unauthorized",
                    suggestion="Send the admin key as a bearer token.",
                )
                await JSONResponse(error.to_dict(), status_code=error.status_code)(
                    scope, receive, send
                )
                return

        await self.app(scope, receive, send)

    @staticmethod
    def _is_admin(path: str) -> bool:
        return path == ADMIN_PREFIX or path.startswith(ADMIN_PREFIX + "/")


def run_http_server(app: ASGIApp, settings: Settings) -> None:
    """Serve the application with uvicorn until interrupted."""
    http_log = log.bind(host=settings.server.host, port=settings.server.port)

    if not settings.server.admin_key:
        http_log.warning("admin_routes_disabled", reason="no admin_key configured")

    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
