from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

DEFAULT_TITLE = "Generated Website"
DEFAULT_DESCRIPTION = "A unique AI-generated website"

_PATH_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_HANDLE_RE = re.compile(r"^[a-z0-9_]{1,15}$")


class WebsiteRecord(BaseModel):
    """One generated website, keyed by its normalized path."""

    path: str
    html: str
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    view_count: int = 1
    created_at: datetime
    last_viewed: datetime
    generator_handle: str | None = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not _PATH_RE.match(v):
            raise ValueError(f"Path is not normalized: {v!r}")
        return v

    @field_validator("title")
    @classmethod
    def default_title(cls, v: str) -> str:
        return v.strip() or DEFAULT_TITLE

    @field_validator("description")
    @classmethod
    def default_description(cls, v: str) -> str:
        return v.strip() or DEFAULT_DESCRIPTION

    @field_validator("view_count")
    @classmethod
    def validate_view_count(cls, v: int) -> int:
        if v < 0:
            raise ValueError("view_count must be >= 0")
        return v

    @field_validator("generator_handle")
    @classmethod
    def validate_handle(cls, v: str | None) -> str | None:
        if v is not None and not _HANDLE_RE.match(v):
            raise ValueError(f"Invalid generator handle: {v!r}")
        return v


class WebsiteSummary(BaseModel):
    """Row shape used by the stats page and the sitemap."""

    path: str
    title: str | None = None
    view_count: int = 0
    created_at: datetime
    generator_handle: str | None = None


class SiteStats(BaseModel):
    total_websites: int = 0
    total_views: int = 0
    popular: list[WebsiteSummary] = []
    recent: list[WebsiteSummary] = []
