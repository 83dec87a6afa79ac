"""Background scheduler coroutine for local cache sweeps."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from mirage.state import AppState

log = structlog.get_logger()


async def run_cache_sweep_scheduler(state: AppState) -> None:
    """Evict expired local cache entries on a fixed interval, forever.

    Started by the lifespan and cancelled on shutdown.
    """
    interval = state.settings.cache.resolved_sweep_interval

    while True:
        await asyncio.sleep(interval)
        removed = state.local_cache.sweep()
        log.info("cache_sweep_complete", removed=removed, remaining=len(state.local_cache))
