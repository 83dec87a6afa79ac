"""Detached store writes.

View-count bumps and freshly generated records are written after the
response is already decided. Each write runs as its own asyncio task whose
result is a ``WriteResult``; callers may await it (tests do) or ignore it.
Failures are reported through the log, never raised into the request.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from mirage.errors import MirageError

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

log = structlog.get_logger()


@dataclass(frozen=True)
class WriteResult:
    operation: str
    path: str
    ok: bool
    error: str | None = None


class BackgroundWrites:
    """Owns the set of in-flight write tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[WriteResult]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    async def _run(self, operation: str, path: str, coro: Coroutine[Any, Any, Any]) -> WriteResult:
        try:
            await coro
        except MirageError as exc:
            log.warning(
                "background_write_failed",
                operation=operation,
                path=path,
                code=exc.code,
                error=exc.message,
            )
            return WriteResult(operation, path, ok=False, error=exc.message)
        except Exception as exc:
            log.error(
                "background_write_failed",
                operation=operation,
                path=path,
                exc_info=True,
            )
            return WriteResult(operation, path, ok=False, error=str(exc))
        log.debug("background_write_complete", operation=operation, path=path)
        return WriteResult(operation, path, ok=True)

    def spawn(
        self, operation: str, path: str, coro: Coroutine[Any, Any, Any]
    ) -> asyncio.Task[WriteResult]:
        """Schedule ``coro`` and return its task. The task never raises."""
        task = asyncio.create_task(self._run(operation, path, coro))
        # The event loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> list[WriteResult]:
        """Wait for every pending write. Called once at shutdown."""
        if not self._tasks:
            return []
        pending = list(self._tasks)
        log.info("background_writes_draining", pending=len(pending))
        return list(await asyncio.gather(*pending))
