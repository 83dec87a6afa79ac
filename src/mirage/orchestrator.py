"""Get-or-generate flow for a sanitized path.

Lookup order is local cache, then content store, then generation. Store
errors are soft: a failed read falls through to generation, and writes run
as detached tasks whose failures are only logged. Generation errors
propagate as ``MirageError`` so the HTTP layer can render an error page.

Cache hits return the cached record verbatim and do not touch the store's
view counter. Store hits return the stored counter plus one and schedule
the increment in the background.

With ``cache.single_flight`` enabled, concurrent misses for the same path
share one generation instead of each calling the upstream API and racing
their upserts. It is off by default.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from mirage import postprocess
from mirage.errors import MirageError
from mirage.models.website import WebsiteRecord
from mirage.prompts import build_prompt
from mirage.sanitizer import require_handle, sanitize_path

if TYPE_CHECKING:
    from collections.abc import Callable

    from mirage.config import Settings
    from mirage.local_cache import LocalCache
    from mirage.models.inputs import AdvancedOptions
    from mirage.protocols import ContentStoreProtocol, GenerationClientProtocol
    from mirage.tasks import BackgroundWrites, WriteResult

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ResolveResult:
    record: WebsiteRecord
    is_existing: bool
    # Store write scheduled by this resolve, if any
    pending_write: asyncio.Task[WriteResult] | None = None

    @property
    def html(self) -> str:
        return self.record.html

    @property
    def view_count(self) -> int:
        return self.record.view_count

    @property
    def created_at(self) -> datetime:
        return self.record.created_at


@dataclass
class GeneratorUpdate:
    path: str
    handle: str | None
    updated_rows: int
    cache_cleared: bool


class Orchestrator:
    def __init__(
        self,
        store: ContentStoreProtocol,
        local_cache: LocalCache,
        generator: GenerationClientProtocol,
        writes: BackgroundWrites,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = local_cache
        self._generator = generator
        self._writes = writes
        self._settings = settings
        self._clock = clock
        self._in_flight: dict[str, asyncio.Future[ResolveResult]] = {}

    async def resolve(
        self,
        path: str,
        generator_handle: str | None = None,
        options: AdvancedOptions | None = None,
    ) -> ResolveResult:
        """Return the record for ``path``, generating it on a miss.

        ``path`` must already be sanitized. Raises MirageError with
        GENERATION_FAILED or GENERATION_RATE_LIMITED when a miss cannot be
        generated.
        """
        cached = self._cache.get(path)
        if cached is not None:
            log.debug("local_cache_hit", path=path, view_count=cached.view_count)
            return ResolveResult(record=cached, is_existing=True)

        existing = await self._read_store(path)
        if existing is not None:
            return self._serve_existing(existing)

        if not self._settings.cache.single_flight:
            return await self._generate(path, generator_handle, options)
        return await self._generate_once(path, generator_handle, options)

    async def _read_store(self, path: str) -> WebsiteRecord | None:
        try:
            return await self._store.get(path)
        except MirageError as exc:
            log.warning("store_read_fallthrough", path=path, code=exc.code, error=exc.message)
            return None

    def _serve_existing(self, stored: WebsiteRecord) -> ResolveResult:
        now = self._clock()
        record = stored.model_copy(
            update={"view_count": stored.view_count + 1, "last_viewed": now}
        )
        self._cache.put(record.path, record)
        pending = self._writes.spawn(
            "record_view", record.path, self._store.record_view(record.path, now)
        )
        log.info("serving_existing", path=record.path, view_count=record.view_count)
        return ResolveResult(record=record, is_existing=True, pending_write=pending)

    async def _generate_once(
        self,
        path: str,
        generator_handle: str | None,
        options: AdvancedOptions | None,
    ) -> ResolveResult:
        in_flight = self._in_flight.get(path)
        if in_flight is not None:
            log.info("generation_joined", path=path)
            # shield: one waiter being cancelled must not cancel the others
            try:
                result = await asyncio.shield(in_flight)
            except asyncio.CancelledError:
                if not in_flight.cancelled():
                    raise
                # The leading request was cancelled; generate on our own behalf
                log.info("generation_leader_cancelled", path=path)
                return await self._generate_once(path, generator_handle, options)
            return ResolveResult(record=result.record, is_existing=False)

        future: asyncio.Future[ResolveResult] = asyncio.get_running_loop().create_future()
        self._in_flight[path] = future
        try:
            result = await self._generate(path, generator_handle, options)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieved here so a future with no joiners does not log a warning
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._in_flight.pop(path, None)

    async def _generate(
        self,
        path: str,
        generator_handle: str | None,
        options: AdvancedOptions | None,
    ) -> ResolveResult:
        log.info(
            "generation_started",
            path=path,
            generator=generator_handle,
            customized=options is not None and not options.is_empty,
        )
        raw = await self._generator.generate(build_prompt(path, options))

        now = self._clock()
        html = postprocess.clean(
            raw,
            path,
            now,
            view_count=1,
            generator_handle=generator_handle,
            is_new_generation=True,
            base_url=self._settings.server.base_url,
        )
        record = WebsiteRecord(
            path=path,
            html=html,
            title=postprocess.extract_title(html),
            description=postprocess.extract_description(html),
            view_count=1,
            created_at=now,
            last_viewed=now,
            generator_handle=generator_handle,
        )
        self._cache.put(path, record)
        pending = self._writes.spawn("upsert", path, self._store.upsert(record))
        log.info("generation_saved", path=path, title=record.title, html_length=len(html))
        return ResolveResult(record=record, is_existing=False, pending_write=pending)

    async def update_generator(self, raw_path: str, raw_handle: str | None) -> GeneratorUpdate:
        """Overwrite the attribution of a stored page and drop its cache entry.

        Raises MirageError for an invalid path or handle, and STORE_ERROR when
        the store write fails.
        """
        path = sanitize_path(raw_path)
        handle = require_handle(raw_handle)
        updated_rows = await self._store.update_generator(path, handle)
        cache_cleared = self._cache.clear_one(path)
        log.info(
            "generator_updated",
            path=path,
            generator=handle or "anonymous",
            updated_rows=updated_rows,
        )
        return GeneratorUpdate(
            path=path,
            handle=handle,
            updated_rows=updated_rows,
            cache_cleared=cache_cleared,
        )
