"""Process-local TTL cache of website records.

Shields the content store from read amplification. One instance is created
by the lifespan and injected into the orchestrator; nothing here is module
state. Entries older than the TTL are treated as absent and evicted lazily
on access, and the sweep scheduler calls ``sweep()`` on a fixed interval so
memory stays bounded when traffic is low.

Not shared across processes. Updates are whole-entry replacements, so no
lock is needed under asyncio.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from mirage.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from mirage.models.website import WebsiteRecord

log = structlog.get_logger()

DEFAULT_TTL_SECONDS = 300.0


class LocalCache:
    """In-memory mapping from path to the last-known record."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> WebsiteRecord | None:
        """Return the cached record, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.age(self._clock()) > self._ttl:
            # Lazy eviction; the sweep catches keys that are never read again
            self._entries.pop(key, None)
            log.debug("local_cache_expired", key=key)
            return None
        return entry.record

    def put(self, key: str, record: WebsiteRecord) -> None:
        self._entries[key] = CacheEntry(record=record, cached_at=self._clock())

    def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        log.info("local_cache_cleared", removed=removed)
        return removed

    def clear_one(self, key: str) -> bool:
        """Drop a single entry. Returns True if it was present."""
        removed = self._entries.pop(key, None) is not None
        log.debug("local_cache_entry_cleared", key=key, removed=removed)
        return removed

    def sweep(self) -> int:
        """Evict all expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.age(now) > self._ttl]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def stats(self) -> dict:
        return {"size": len(self._entries), "items": sorted(self._entries)}
