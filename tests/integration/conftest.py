"""Integration test fixtures.

Provides a fully wired AppState with in-memory SQLite, a controllable local
cache clock, and a fake generation client. Shared fixtures (settings,
fake_generator, make_record, sqlite_store) come from tests/conftest.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from mirage.app import create_app
from mirage.local_cache import LocalCache
from mirage.orchestrator import Orchestrator
from mirage.state import AppState
from mirage.tasks import BackgroundWrites

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from mirage.config import Settings
    from mirage.store.sqlite import SqliteContentStore


class ManualClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def cache_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
async def app_state(
    settings: Settings,
    sqlite_store: SqliteContentStore,
    fake_generator: Any,
    cache_clock: ManualClock,
) -> AsyncGenerator[AppState, None]:
    """Full AppState wired for integration tests."""
    local_cache = LocalCache(settings.cache.ttl_seconds, clock=cache_clock)
    writes = BackgroundWrites()
    orchestrator = Orchestrator(
        store=sqlite_store,
        local_cache=local_cache,
        generator=fake_generator,
        writes=writes,
        settings=settings,
    )
    state = AppState(
        settings=settings,
        store=sqlite_store,
        local_cache=local_cache,
        orchestrator=orchestrator,
        writes=writes,
    )
    yield state
    await writes.drain()


@pytest.fixture()
async def client(app_state: AppState) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app via ASGI transport (no lifespan, no server)."""
    app = create_app(app_state.settings, state=app_state)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http_client:
        yield http_client
