"""Hosted content store speaking the PostgREST dialect (Supabase).

Talks to ``{url}/rest/v1/websites`` through the shared ``httpx.AsyncClient``
owned by the lifespan. The hosted table names the attribution column
``generator_x_handle``; it is mapped to ``generator_handle`` at this boundary.

PostgREST has no server-side increment without a stored procedure, so
``record_view`` reads the current counter and writes it back plus one.
Concurrent views of the same path can therefore lose increments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from mirage.errors import ErrorCode, MirageError
from mirage.models.website import SiteStats, WebsiteRecord, WebsiteSummary

if TYPE_CHECKING:
    from datetime import datetime

log = structlog.get_logger()

_RECORD_SELECT = (
    "path,html,title,description,view_count,created_at,last_viewed,generator_x_handle"
)
_SUMMARY_SELECT = "path,title,view_count,created_at,generator_x_handle"


def _from_row(row: dict[str, Any]) -> dict[str, Any]:
    data = dict(row)
    data["generator_handle"] = data.pop("generator_x_handle", None)
    return data


def _malformed(operation: str, path: str | None, exc: Exception) -> MirageError:
    log.warning("store_row_invalid", operation=operation, path=path, error=str(exc))
    return MirageError(
        code=ErrorCode.STORE_ERROR,
        message=f"Content store {operation} returned malformed data",
        suggestion="Check the rows in the hosted websites table.",
        recoverable=True,
    )


class SupabaseContentStore:
    """PostgREST-backed record store implementing ContentStoreProtocol."""

    def __init__(self, client: httpx.AsyncClient, url: str, service_key: str) -> None:
        self._client = client
        self._endpoint = f"{url.rstrip('/')}/rest/v1/websites"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        operation: str,
        *,
        path: str | None = None,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            response = await self._client.request(
                method, self._endpoint, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            log.warning("store_request_error", operation=operation, path=path, exc_info=True)
            raise MirageError(
                code=ErrorCode.STORE_ERROR,
                message=f"Content store {operation} failed: {exc}",
                suggestion="The hosted store may be temporarily unreachable.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            log.warning(
                "store_request_error",
                operation=operation,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise MirageError(
                code=ErrorCode.STORE_ERROR,
                message=f"Content store {operation} failed with HTTP {response.status_code}",
                suggestion="Check the store URL and service key.",
                recoverable=response.status_code >= 500,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise _malformed(operation, path, exc) from exc

    async def get(self, path: str) -> WebsiteRecord | None:
        rows = await self._request(
            "GET",
            "read",
            path=path,
            params={"select": _RECORD_SELECT, "path": f"eq.{path}", "limit": "1"},
        )
        if not rows:
            return None
        try:
            return WebsiteRecord.model_validate(_from_row(rows[0]))
        except (ValueError, TypeError) as exc:
            raise _malformed("read", path, exc) from exc

    async def record_view(self, path: str, viewed_at: datetime) -> None:
        rows = await self._request(
            "GET",
            "view update",
            path=path,
            params={"select": "view_count", "path": f"eq.{path}", "limit": "1"},
        )
        if not rows:
            return
        await self._request(
            "PATCH",
            "view update",
            path=path,
            params={"path": f"eq.{path}"},
            json={
                "view_count": int(rows[0].get("view_count") or 0) + 1,
                "last_viewed": viewed_at.isoformat(),
            },
        )

    async def upsert(self, record: WebsiteRecord) -> None:
        payload = record.model_dump(mode="json")
        payload["generator_x_handle"] = payload.pop("generator_handle")
        await self._request(
            "POST",
            "upsert",
            path=record.path,
            params={"on_conflict": "path"},
            json=payload,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def update_generator(self, path: str, handle: str | None) -> int:
        rows = await self._request(
            "PATCH",
            "generator update",
            path=path,
            params={"path": f"eq.{path}"},
            json={"generator_x_handle": handle},
            prefer="return=representation",
        )
        return len(rows or [])

    async def _summaries(self, operation: str, order: str, limit: int) -> list[WebsiteSummary]:
        rows = await self._request(
            "GET",
            operation,
            params={"select": _SUMMARY_SELECT, "order": order, "limit": str(limit)},
        )
        try:
            return [WebsiteSummary.model_validate(_from_row(row)) for row in rows or []]
        except (ValueError, TypeError) as exc:
            raise _malformed(operation, None, exc) from exc

    async def get_stats(self, limit: int = 10) -> SiteStats:
        counters = await self._request("GET", "stats query", params={"select": "view_count"})
        counters = counters or []
        return SiteStats(
            total_websites=len(counters),
            total_views=sum(int(row.get("view_count") or 0) for row in counters),
            popular=await self._summaries("stats query", "view_count.desc", limit),
            recent=await self._summaries("stats query", "created_at.desc", limit),
        )

    async def list_for_sitemap(self, limit: int = 1000) -> list[WebsiteSummary]:
        return await self._summaries("sitemap query", "view_count.desc", limit)

    async def close(self) -> None:
        # The http client belongs to the lifespan
        return None
