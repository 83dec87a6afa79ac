"""Handler for /stats and /api/stats.

Returns the aggregate payload as a dict. The HTTP layer decides whether to
send it as JSON or render it through ``pages.stats_page``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mirage.errors import MirageError
from mirage.models.website import SiteStats

if TYPE_CHECKING:
    from mirage.models.website import WebsiteSummary
    from mirage.state import AppState

log = structlog.get_logger()

STATS_LIMIT = 10


def _summary(site: WebsiteSummary) -> dict:
    return {
        "path": site.path,
        "title": site.title,
        "viewCount": site.view_count,
        "createdAt": site.created_at.isoformat(),
        "generator": site.generator_handle,
    }


def to_payload(stats: SiteStats, error: str | None = None) -> dict:
    payload: dict = {
        "stats": {
            "totalWebsites": stats.total_websites,
            "totalViews": stats.total_views,
            "popularPaths": [_summary(site) for site in stats.popular],
            "recentWebsites": [_summary(site) for site in stats.recent],
        }
    }
    if error is not None:
        payload["error"] = error
    return payload


async def handle(state: AppState) -> tuple[SiteStats, str | None]:
    """Fetch stats. A store failure yields empty stats plus the error message."""
    try:
        stats = await state.store.get_stats(STATS_LIMIT)
    except MirageError as exc:
        log.warning("stats_store_error", code=exc.code, error=exc.message)
        return SiteStats(), exc.message
    log.info(
        "stats_fetched",
        total_websites=stats.total_websites,
        total_views=stats.total_views,
    )
    return stats, None
