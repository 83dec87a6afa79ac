"""Starlette application: routes, error rendering, and app construction.

Route handlers live in ``mirage.handlers``; this module only adapts them to
HTTP. State arrives through ``app.state.mirage``, set either by the server
lifespan or directly by tests via ``create_app(settings, state=...)``.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

import mirage.handlers.sitemap as h_sitemap
import mirage.handlers.stats as h_stats
import mirage.handlers.update_generator as h_update_generator
from mirage import __version__, postprocess
from mirage.errors import ErrorCode, MirageError
from mirage.handlers import pages
from mirage.handlers.robots import build_robots
from mirage.models.inputs import AdvancedOptions
from mirage.sanitizer import sanitize_path, validate_handle
from mirage.transport import AdminAuthMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from starlette.requests import Request

    from mirage.config import Settings
    from mirage.state import AppState

log = structlog.get_logger()

PAGE_CACHE_CONTROL = "public, max-age=300"
SITEMAP_CACHE_CONTROL = "public, max-age=3600"


def _state(request: Request) -> AppState:
    return request.app.state.mirage


def _json_error(exc: MirageError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _unexpected_json_error() -> JSONResponse:
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def _wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")


# ---------------------------------------------------------------------------
# Site routes
# ---------------------------------------------------------------------------


async def homepage(request: Request) -> Response:
    return HTMLResponse(pages.homepage())


async def health(request: Request) -> Response:
    state = _state(request)
    return JSONResponse(
        {
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(UTC).isoformat(),
            "cache_size": len(state.local_cache),
        }
    )


async def robots(request: Request) -> Response:
    return PlainTextResponse(build_robots(_state(request).settings.server.base_url))


async def sitemap(request: Request) -> Response:
    xml = await h_sitemap.handle(_state(request))
    return Response(
        xml,
        media_type="application/xml",
        headers={"Cache-Control": SITEMAP_CACHE_CONTROL, "X-Robots-Tag": "noindex"},
    )


async def stats(request: Request) -> Response:
    site_stats, error = await h_stats.handle(_state(request))
    if _wants_json(request):
        return JSONResponse(h_stats.to_payload(site_stats, error))
    return HTMLResponse(pages.stats_page(site_stats, error))


async def api_stats(request: Request) -> Response:
    site_stats, error = await h_stats.handle(_state(request))
    return JSONResponse(h_stats.to_payload(site_stats, error))


async def update_generator(request: Request) -> Response:
    try:
        try:
            body = await request.json()
        except json.JSONDecodeError as exc:
            raise MirageError(
                code=ErrorCode.INVALID_INPUT,
                message="Request body must be valid JSON",
                suggestion='Send {"path": "...", "xHandle": "..."}.',
            ) from exc
        return JSONResponse(await h_update_generator.handle(body, _state(request)))
    except MirageError as exc:
        log.warning("route_error", route="update_generator", code=exc.code, message=exc.message)
        return _json_error(exc)
    except Exception:
        log.error("route_unexpected_error", route="update_generator", exc_info=True)
        return _unexpected_json_error()


# ---------------------------------------------------------------------------
# Admin routes (guarded by AdminAuthMiddleware)
# ---------------------------------------------------------------------------


async def admin_clear_cache(request: Request) -> Response:
    state = _state(request)
    cleared = state.local_cache.clear()
    return JSONResponse(
        {"message": "Cache cleared", "cleared": cleared, "cache_size": len(state.local_cache)}
    )


async def admin_cache(request: Request) -> Response:
    return JSONResponse(_state(request).local_cache.stats())


# ---------------------------------------------------------------------------
# Generate-or-serve
# ---------------------------------------------------------------------------


def _options_from_query(request: Request) -> AdvancedOptions | None:
    params = request.query_params
    options = AdvancedOptions(
        style=params.get("style"),
        content=params.get("content"),
        topic=params.get("topic"),
    )
    return None if options.is_empty else options


def _error_page(path: str, exc: MirageError) -> Response:
    if exc.code in (ErrorCode.PATH_RESERVED, ErrorCode.PATH_TOO_LONG, ErrorCode.INVALID_PATH):
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    return HTMLResponse(
        pages.error_page(path, exc.message, exc.suggestion), status_code=exc.status_code
    )


async def website(request: Request) -> Response:
    raw_path: str = request.path_params.get("path", "")
    state = _state(request)
    try:
        key = sanitize_path(raw_path)
        handle = validate_handle(request.query_params.get("x"))
        result = await state.orchestrator.resolve(key, handle, _options_from_query(request))
    except MirageError as exc:
        log.warning(
            "route_error", route="website", path=raw_path, code=exc.code, message=exc.message
        )
        return _error_page(raw_path, exc)
    except Exception:
        log.error("route_unexpected_error", route="website", path=raw_path, exc_info=True)
        return HTMLResponse(pages.error_page(raw_path, "Internal server error"), status_code=500)

    html = result.html
    if result.is_existing:
        record = result.record
        # Stored documents keep the blocks rendered at generation time
        html = postprocess.decorate(
            html,
            record.path,
            record.created_at,
            view_count=record.view_count,
            generator_handle=record.generator_handle,
            is_new_generation=record.generator_handle is None and record.view_count <= 1,
            base_url=state.settings.server.base_url,
        )
    return HTMLResponse(html, headers={"Cache-Control": PAGE_CACHE_CONTROL})


# ---------------------------------------------------------------------------
# App construction
# ---------------------------------------------------------------------------

ROUTES = [
    Route("/", homepage),
    Route("/health", health),
    Route("/robots.txt", robots),
    Route("/sitemap.xml", sitemap),
    Route("/api/sitemap", sitemap),
    Route("/stats", stats),
    Route("/api/stats", api_stats),
    Route("/api/update-generator", update_generator, methods=["POST"]),
    Route("/admin/clear-cache", admin_clear_cache),
    Route("/admin/cache", admin_cache),
    Route("/{path:path}", website),
]


def create_app(
    settings: Settings,
    *,
    state: AppState | None = None,
    lifespan: Callable[[Starlette], AbstractAsyncContextManager[None]] | None = None,
) -> Starlette:
    """Build the ASGI app.

    Pass ``state`` to serve a prebuilt AppState (tests), or ``lifespan`` to
    have the app build its own on startup (server).
    """
    app = Starlette(
        routes=ROUTES,
        middleware=[Middleware(AdminAuthMiddleware, admin_key=settings.server.admin_key)],
        lifespan=lifespan,
    )
    if state is not None:
        app.state.mirage = state
    return app
