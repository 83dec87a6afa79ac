from __future__ import annotations

from mirage.models.cache import CacheEntry
from mirage.models.inputs import (
    AdvancedOptions,
    UpdateGeneratorInput,
    UpdateGeneratorOutput,
)
from mirage.models.website import SiteStats, WebsiteRecord, WebsiteSummary

__all__ = [
    # website
    "WebsiteRecord",
    "WebsiteSummary",
    "SiteStats",
    # cache
    "CacheEntry",
    # inputs
    "AdvancedOptions",
    "UpdateGeneratorInput",
    "UpdateGeneratorOutput",
]
