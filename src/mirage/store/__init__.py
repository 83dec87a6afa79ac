"""Content store backends and the factory that picks one from settings."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from mirage.store.sqlite import SqliteContentStore
from mirage.store.supabase import SupabaseContentStore

if TYPE_CHECKING:
    import httpx

    from mirage.config import StoreSettings
    from mirage.protocols import ContentStoreProtocol

log = structlog.get_logger()

__all__ = ["SqliteContentStore", "SupabaseContentStore", "open_store"]


async def open_store(settings: StoreSettings, client: httpx.AsyncClient) -> ContentStoreProtocol:
    """Create the configured store. Called once by the lifespan."""
    if settings.backend == "supabase":
        if not settings.url or not settings.service_key:
            raise ValueError("store.url and store.service_key are required for supabase")
        log.info("store_opened", backend="supabase", url=settings.url)
        return SupabaseContentStore(client, settings.url, settings.service_key)

    db_path = Path(settings.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    store = SqliteContentStore(db)
    await store.init_db()
    log.info("store_opened", backend="sqlite", db_path=str(db_path))
    return store
