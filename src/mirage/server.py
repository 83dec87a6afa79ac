"""Server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the Starlette lifespan context manager
- Start uvicorn
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog

from mirage import __version__
from mirage.app import create_app
from mirage.config import Settings
from mirage.generation import GenerationClient, build_http_client
from mirage.local_cache import LocalCache
from mirage.orchestrator import Orchestrator
from mirage.schedulers import run_cache_sweep_scheduler
from mirage.state import AppState
from mirage.store import open_store
from mirage.tasks import BackgroundWrites
from mirage.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def build_state(settings: Settings) -> AppState:
    """Create every shared component. The caller owns teardown."""
    http_client = build_http_client(settings.generation.timeout_seconds)
    store = await open_store(settings.store, http_client)
    local_cache = LocalCache(settings.cache.ttl_seconds)
    writes = BackgroundWrites()
    orchestrator = Orchestrator(
        store=store,
        local_cache=local_cache,
        generator=GenerationClient(http_client, settings.generation),
        writes=writes,
        settings=settings,
    )
    return AppState(
        settings=settings,
        store=store,
        local_cache=local_cache,
        orchestrator=orchestrator,
        writes=writes,
        http_client=http_client,
    )


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings: Settings = app.state.settings

    log.info(
        "server_starting",
        version=__version__,
        provider=settings.generation.provider,
        store=settings.store.backend,
    )

    state = await build_state(settings)
    app.state.mirage = state

    if settings.generation.provider == "anthropic" and not settings.generation.api_key:
        log.warning("generation_api_key_missing", provider="anthropic")

    cache_sweep_task = asyncio.create_task(run_cache_sweep_scheduler(state))

    log.info(
        "server_started",
        version=__version__,
        cache_ttl_seconds=settings.cache.ttl_seconds,
        single_flight=settings.cache.single_flight,
    )

    try:
        yield
    finally:
        cache_sweep_task.cancel()
        with suppress(asyncio.CancelledError):
            await cache_sweep_task
        await state.writes.drain()
        await state.store.close()
        if state.http_client is not None:
            await state.http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def build_app(settings: Settings) -> Starlette:
    app = create_app(settings, lifespan=lifespan)
    app.state.settings = settings
    return app


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    run_http_server(build_app(settings), settings)


if __name__ == "__main__":
    main()
