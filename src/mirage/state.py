"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan
context manager) and reaches every route handler through ``app.state``.
Tests build one directly and hand it to ``create_app``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from mirage.config import Settings
    from mirage.local_cache import LocalCache
    from mirage.orchestrator import Orchestrator
    from mirage.protocols import ContentStoreProtocol
    from mirage.tasks import BackgroundWrites


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every route handler."""

    settings: Settings
    store: ContentStoreProtocol
    local_cache: LocalCache
    orchestrator: Orchestrator
    writes: BackgroundWrites
    http_client: httpx.AsyncClient | None = None
