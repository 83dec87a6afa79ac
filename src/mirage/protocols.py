"""Protocol interfaces for swappable components.

The orchestrator, handlers and AppState reference these protocols, not the
concrete implementations. This allows:
- Tests to use lightweight in-memory fakes
- The content store backend to be chosen by configuration
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from mirage.models.website import SiteStats, WebsiteRecord, WebsiteSummary


class ContentStoreProtocol(Protocol):
    """Interface for the persistent record store keyed by path."""

    async def get(self, path: str) -> WebsiteRecord | None: ...

    async def record_view(self, path: str, viewed_at: datetime) -> None: ...

    async def upsert(self, record: WebsiteRecord) -> None: ...

    async def update_generator(self, path: str, handle: str | None) -> int: ...

    async def get_stats(self, limit: int = 10) -> SiteStats: ...

    async def list_for_sitemap(self, limit: int = 1000) -> list[WebsiteSummary]: ...

    async def close(self) -> None: ...


class GenerationClientProtocol(Protocol):
    """Interface for the remote text-generation API."""

    async def generate(self, prompt: str) -> str: ...
