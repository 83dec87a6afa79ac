from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mirage.models.website import WebsiteRecord


@dataclass(frozen=True)
class CacheEntry:
    """A record as last seen by this process, stamped with the local clock."""

    record: WebsiteRecord
    cached_at: float  # monotonic seconds

    def age(self, now: float) -> float:
        return now - self.cached_at
