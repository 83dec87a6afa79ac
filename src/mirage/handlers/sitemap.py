"""Handler for /sitemap.xml.

Lists the homepage plus every stored website, most viewed first. Priority
and change frequency are derived from the view count.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape as xml_escape

import structlog

from mirage.errors import MirageError

if TYPE_CHECKING:
    from mirage.models.website import WebsiteSummary
    from mirage.state import AppState

log = structlog.get_logger()

MIN_PRIORITY = 0.3
MAX_PRIORITY = 0.9
SITEMAP_LIMIT = 1000


def priority_for(view_count: int) -> float:
    """``view_count / 100`` clamped to [0.3, 0.9]."""
    return max(MIN_PRIORITY, min(MAX_PRIORITY, view_count / 100))


def changefreq_for(view_count: int) -> str:
    if view_count > 50:
        return "daily"
    if view_count > 10:
        return "weekly"
    return "monthly"


def _url_entry(loc: str, lastmod: str, changefreq: str, priority: str) -> list[str]:
    return [
        "  <url>",
        f"    <loc>{xml_escape(loc)}</loc>",
        f"    <lastmod>{lastmod}</lastmod>",
        f"    <changefreq>{changefreq}</changefreq>",
        f"    <priority>{priority}</priority>",
        "  </url>",
    ]


def build_sitemap(base_url: str, sites: list[WebsiteSummary], today: datetime) -> str:
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    parts.extend(_url_entry(base_url, today.date().isoformat(), "daily", "1.0"))
    for site in sites:
        parts.extend(
            _url_entry(
                f"{base_url}/{site.path}",
                site.created_at.date().isoformat(),
                changefreq_for(site.view_count),
                f"{priority_for(site.view_count):.2f}",
            )
        )
    parts.append("</urlset>")
    return "\n".join(parts) + "\n"


async def handle(state: AppState) -> str:
    """Render the sitemap. A store failure degrades to the homepage alone."""
    try:
        sites = await state.store.list_for_sitemap(SITEMAP_LIMIT)
    except MirageError as exc:
        log.warning("sitemap_store_error", code=exc.code, error=exc.message)
        sites = []
    log.info("sitemap_built", url_count=len(sites) + 1)
    return build_sitemap(state.settings.server.base_url, sites, datetime.now(UTC))
