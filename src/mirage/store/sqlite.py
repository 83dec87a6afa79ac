"""SQLite content store.

Holds one row per generated website in the ``websites`` table. Every
``aiosqlite.Error`` is logged with ``exc_info`` and re-raised as
``MirageError(STORE_ERROR)``; whether a store failure is fatal is decided by
the caller, not here.
"""

from __future__ import annotations

from datetime import datetime

import aiosqlite
import structlog

from mirage.errors import ErrorCode, MirageError
from mirage.models.website import SiteStats, WebsiteRecord, WebsiteSummary

log = structlog.get_logger()

_CREATE_WEBSITES_TABLE = """
CREATE TABLE IF NOT EXISTS websites (
    path              TEXT PRIMARY KEY,
    html              TEXT NOT NULL,
    title             TEXT NOT NULL,
    description       TEXT NOT NULL,
    view_count        INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT NOT NULL,
    last_viewed       TEXT NOT NULL,
    generator_handle  TEXT
)
"""

_CREATE_VIEWS_INDEX = "CREATE INDEX IF NOT EXISTS idx_websites_views ON websites(view_count)"
_CREATE_CREATED_INDEX = "CREATE INDEX IF NOT EXISTS idx_websites_created ON websites(created_at)"

_RECORD_COLUMNS = (
    "path, html, title, description, view_count, created_at, last_viewed, generator_handle"
)
_SUMMARY_COLUMNS = "path, title, view_count, created_at, generator_handle"

# A row the models reject (pydantic ValidationError is a ValueError) or a
# malformed timestamp
_ROW_ERRORS = (ValueError, TypeError)


def _store_error(operation: str, path: str | None = None) -> MirageError:
    target = f" for /{path}" if path else ""
    return MirageError(
        code=ErrorCode.STORE_ERROR,
        message=f"Content store {operation} failed{target}",
        suggestion="The database may be locked or unavailable. Try again later.",
        recoverable=True,
    )


def _summary_from_row(row: tuple) -> WebsiteSummary:
    return WebsiteSummary(
        path=row[0],
        title=row[1],
        view_count=row[2],
        created_at=datetime.fromisoformat(row[3]),
        generator_handle=row[4],
    )


class SqliteContentStore:
    """SQLite-backed record store implementing ContentStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_WEBSITES_TABLE)
        await self._db.execute(_CREATE_VIEWS_INDEX)
        await self._db.execute(_CREATE_CREATED_INDEX)
        await self._db.commit()

    async def get(self, path: str) -> WebsiteRecord | None:
        """Exact-match lookup by path. Returns None when no row exists."""
        try:
            cursor = await self._db.execute(
                f"SELECT {_RECORD_COLUMNS} FROM websites WHERE path = ?",
                (path,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            log.warning("store_read_error", path=path, exc_info=True)
            raise _store_error("read", path) from exc

        if row is None:
            return None

        try:
            return WebsiteRecord(
                path=row[0],
                html=row[1],
                title=row[2],
                description=row[3],
                view_count=row[4],
                created_at=datetime.fromisoformat(row[5]),
                last_viewed=datetime.fromisoformat(row[6]),
                generator_handle=row[7],
            )
        except _ROW_ERRORS as exc:
            log.warning("store_row_invalid", path=path, error=str(exc))
            raise _store_error("read", path) from exc

    async def record_view(self, path: str, viewed_at: datetime) -> None:
        """Increment view_count and stamp last_viewed in a single statement."""
        try:
            await self._db.execute(
                "UPDATE websites SET view_count = view_count + 1, last_viewed = ? "
                "WHERE path = ?",
                (viewed_at.isoformat(), path),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            log.warning("store_write_error", operation="record_view", path=path, exc_info=True)
            raise _store_error("view update", path) from exc

    async def upsert(self, record: WebsiteRecord) -> None:
        """Insert or overwrite the row for record.path (last write wins)."""
        try:
            await self._db.execute(
                f"INSERT INTO websites ({_RECORD_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(path) DO UPDATE SET "
                "html = excluded.html, title = excluded.title, "
                "description = excluded.description, view_count = excluded.view_count, "
                "created_at = excluded.created_at, last_viewed = excluded.last_viewed, "
                "generator_handle = excluded.generator_handle",
                (
                    record.path,
                    record.html,
                    record.title,
                    record.description,
                    record.view_count,
                    record.created_at.isoformat(),
                    record.last_viewed.isoformat(),
                    record.generator_handle,
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            log.warning("store_write_error", operation="upsert", path=record.path, exc_info=True)
            raise _store_error("upsert", record.path) from exc

    async def update_generator(self, path: str, handle: str | None) -> int:
        """Overwrite the attribution handle. Returns the number of rows updated."""
        try:
            cursor = await self._db.execute(
                "UPDATE websites SET generator_handle = ? WHERE path = ?",
                (handle, path),
            )
            await self._db.commit()
            return cursor.rowcount
        except aiosqlite.Error as exc:
            log.warning(
                "store_write_error", operation="update_generator", path=path, exc_info=True
            )
            raise _store_error("generator update", path) from exc

    async def get_stats(self, limit: int = 10) -> SiteStats:
        """Aggregate counters plus the most viewed and most recent records."""
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*), COALESCE(SUM(view_count), 0) FROM websites"
            )
            totals = await cursor.fetchone()

            cursor = await self._db.execute(
                f"SELECT {_SUMMARY_COLUMNS} FROM websites "
                "ORDER BY view_count DESC, path ASC LIMIT ?",
                (limit,),
            )
            popular = [_summary_from_row(row) for row in await cursor.fetchall()]

            cursor = await self._db.execute(
                f"SELECT {_SUMMARY_COLUMNS} FROM websites "
                "ORDER BY created_at DESC, path ASC LIMIT ?",
                (limit,),
            )
            recent = [_summary_from_row(row) for row in await cursor.fetchall()]
        except aiosqlite.Error as exc:
            log.warning("store_read_error", operation="stats", exc_info=True)
            raise _store_error("stats query") from exc
        except _ROW_ERRORS as exc:
            log.warning("store_row_invalid", operation="stats", error=str(exc))
            raise _store_error("stats query") from exc

        total_websites, total_views = totals if totals is not None else (0, 0)
        return SiteStats(
            total_websites=total_websites,
            total_views=total_views,
            popular=popular,
            recent=recent,
        )

    async def list_for_sitemap(self, limit: int = 1000) -> list[WebsiteSummary]:
        """Records ordered by view count, most viewed first."""
        try:
            cursor = await self._db.execute(
                f"SELECT {_SUMMARY_COLUMNS} FROM websites "
                "ORDER BY view_count DESC, path ASC LIMIT ?",
                (limit,),
            )
            return [_summary_from_row(row) for row in await cursor.fetchall()]
        except aiosqlite.Error as exc:
            log.warning("store_read_error", operation="sitemap", exc_info=True)
            raise _store_error("sitemap query") from exc
        except _ROW_ERRORS as exc:
            log.warning("store_row_invalid", operation="sitemap", error=str(exc))
            raise _store_error("sitemap query") from exc

    async def close(self) -> None:
        await self._db.close()
