"""Two-tier result cache with in-flight request deduplication.

Lookup order is memory, then the optional durable tier.  A durable hit is
promoted into memory.  On a miss the query is resolved upstream exactly
once no matter how many callers ask for it concurrently: the first caller
registers a pending entry holding a shared task, later callers join it.

Negative results are cached too.  ``None`` means "absent" to every
:class:`ICacheProvider`, so "not found" is stored as the sentinel
``False`` and turned back into ``None`` on the way out.

Write ordering
--------------
The memory tier is written before the shared task completes, and the
pending entry is only removed by the task's done callback.  A caller that
arrives right after an upstream call settles therefore always finds either
the pending entry or the memory entry.  The durable write is detached as a
background task; its failure is logged and counted, never raised.

Cancellation
------------
Each caller's own token only ever fails that caller.  The shared upstream
call runs under a token owned by the cache, which is cancelled once every
caller that joined the entry has given up.  That lets a downstream
Throttler drop the request if it has not started yet; a request already on
the wire is left to finish.  The cache write is skipped when no caller is
left waiting at the time the call settles.

An abandoned entry stays in the pending map until its task settles.  A
caller arriving in the meantime waits for the settlement and then starts a
fresh request, so there is never more than one upstream call per query.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gittrends_geocoder.interfaces.cache_provider import ICacheProvider
from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.models.stats import CacheStats
from gittrends_geocoder.pipeline.base import GeocoderDecorator
from gittrends_geocoder.providers.cache.memory_cache import MemoryCacheProvider
from gittrends_geocoder.utils.cancellation import CancellationToken
from gittrends_geocoder.utils.errors import RequestCancelledError
from gittrends_geocoder.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable

_logger: structlog.BoundLogger = get_logger(__name__)

# Stored for "not found"; None is reserved for "absent".
NOT_FOUND = False

_MISS = object()


@dataclass(eq=False)
class _PendingRequest:
    upstream: CancellationToken = field(default_factory=CancellationToken)
    waiters: int = 0
    departed: int = 0
    abandoned: bool = False
    task: asyncio.Task[Address | None] = field(init=False)

    @property
    def live(self) -> int:
        """Callers still waiting on the shared task."""
        return self.waiters - self.departed


class Cache(GeocoderDecorator):
    """Cache results of the wrapped geocoder.

    Parameters
    ----------
    geocoder:
        The geocoder to cache.
    size:
        Capacity of the default memory tier.
    ttl:
        Time-to-live in seconds for both tiers; ``None`` never expires.
    secondary:
        Optional durable tier consulted after memory.
    memory:
        Replacement for the default :class:`MemoryCacheProvider`.
    """

    def __init__(
        self,
        geocoder: IGeocoder,
        size: int = 1000,
        ttl: float | None = None,
        secondary: ICacheProvider | None = None,
        memory: ICacheProvider | None = None,
    ) -> None:
        super().__init__(geocoder)
        self._ttl = ttl if ttl else None
        self._memory = memory if memory is not None else MemoryCacheProvider(size, self._ttl)
        self._secondary = secondary
        self._pending: dict[str, _PendingRequest] = {}
        self._background: set[asyncio.Task[None]] = set()

        self._hits = 0
        self._negative_hits = 0
        self._misses = 0
        self._deduplicated = 0
        self._upstream_calls = 0
        self._storage_errors = 0

    # ------------------------------------------------------------------
    # IGeocoder
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        cached = await self._lookup(query)
        if cached is not _MISS:
            return cached  # type: ignore[return-value]

        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        entry = self._active(query)
        while entry is not None and entry.abandoned:
            await self._outlast(query, entry, cancellation)
            entry = self._active(query)

        # No suspension point between this check and the insert in _start().
        if entry is None:
            # The durable read may have yielded; a request that settled in
            # the meantime has already written memory.
            cached = self._memory_peek(query)
            if cached is not _MISS:
                return self._count_hit(cached)
            self._misses += 1
            entry = self._start(query)
        else:
            self._misses += 1
            self._deduplicated += 1
            _logger.debug("cache_request_deduplicated", query=query)

        return await self._join(query, entry, cancellation)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def _lookup(self, query: str) -> Any:
        value = await self._read(self._memory, query)
        if value is None and self._secondary is not None:
            value = self._revive(query, await self._read(self._secondary, query))
            if value is not None:
                await self._write(self._memory, query, value)
                _logger.debug("cache_promoted", query=query)

        if value is None:
            return _MISS
        return self._count_hit(value)

    def _memory_peek(self, query: str) -> Any:
        if not isinstance(self._memory, MemoryCacheProvider):
            return _MISS
        value = self._memory.get_nowait(query)
        return _MISS if value is None else value

    def _count_hit(self, value: Any) -> Address | None:
        self._hits += 1
        if value is NOT_FOUND:
            self._negative_hits += 1
            _logger.debug("cache_hit", negative=True)
            return None
        _logger.debug("cache_hit", negative=False)
        return value  # type: ignore[no-any-return]

    def _revive(self, query: str, value: Any) -> Any:
        """Turn a durable-tier value back into an Address or the sentinel."""
        if value is None or value is NOT_FOUND or isinstance(value, Address):
            return value
        if isinstance(value, dict):
            try:
                return Address.model_validate(value)
            except ValidationError as exc:
                self._storage_errors += 1
                _logger.warning("cache_entry_invalid", query=query, error=str(exc))
                return None
        self._storage_errors += 1
        _logger.warning("cache_entry_invalid", query=query, value_type=type(value).__name__)
        return None

    # ------------------------------------------------------------------
    # Upstream resolution
    # ------------------------------------------------------------------

    def _active(self, query: str) -> _PendingRequest | None:
        entry = self._pending.get(query)
        if entry is not None and entry.abandoned and entry.task.done():
            # Settled; its done callback has not run yet.
            return None
        return entry

    def _start(self, query: str) -> _PendingRequest:
        entry = _PendingRequest()
        entry.task = asyncio.ensure_future(self._resolve(query, entry))
        self._pending[query] = entry
        entry.task.add_done_callback(lambda fut: self._settle(query, entry, fut))
        return entry

    async def _resolve(self, query: str, entry: _PendingRequest) -> Address | None:
        self._upstream_calls += 1
        result = await self._geocoder.search(query, entry.upstream)
        if entry.live == 0:
            _logger.debug("cache_write_skipped", query=query, reason=entry.upstream.reason)
            return result

        value = result if result is not None else NOT_FOUND
        await self._write(self._memory, query, value)
        if self._secondary is not None:
            self._detach(self._write(self._secondary, query, value))
        return result

    def _settle(self, query: str, entry: _PendingRequest, fut: asyncio.Future[Any]) -> None:
        if self._pending.get(query) is entry:
            del self._pending[query]
        # Mark the outcome as retrieved even when every waiter has left.
        if not fut.cancelled():
            fut.exception()

    async def _join(
        self,
        query: str,
        entry: _PendingRequest,
        cancellation: CancellationToken | None,
    ) -> Address | None:
        entry.waiters += 1
        try:
            if cancellation is None:
                return await asyncio.shield(entry.task)

            cancelled = asyncio.ensure_future(cancellation.wait())
            try:
                done, _ = await asyncio.wait(
                    {entry.task, cancelled},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                cancelled.cancel()

            if entry.task in done:
                return entry.task.result()
            raise RequestCancelledError(query=query, reason=cancellation.reason)
        finally:
            if not entry.task.done():
                self._depart(query, entry)

    def _depart(self, query: str, entry: _PendingRequest) -> None:
        entry.departed += 1
        if entry.live > 0 or entry.abandoned:
            return
        # The entry stays registered until the task settles, so a second
        # upstream call for the query cannot start alongside this one.
        entry.abandoned = True
        entry.upstream.cancel("all callers cancelled")
        _logger.debug("cache_request_abandoned", query=query, waiters=entry.waiters)

    async def _outlast(
        self,
        query: str,
        entry: _PendingRequest,
        cancellation: CancellationToken | None,
    ) -> None:
        """Wait for an abandoned upstream call to settle without joining it."""
        _logger.debug("cache_waiting_for_abandoned", query=query)
        if cancellation is None:
            await asyncio.wait({entry.task})
            return

        cancelled = asyncio.ensure_future(cancellation.wait())
        try:
            await asyncio.wait({entry.task, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
        cancellation.raise_if_cancelled(query)

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    # Any tier failure is counted and logged, never raised to the caller.

    async def _read(self, tier: ICacheProvider, query: str) -> Any:
        try:
            return await tier.get(query)
        except Exception as exc:  # noqa: BLE001
            self._tier_failed("cache_read_failed", tier, query, exc)
            return None

    async def _write(self, tier: ICacheProvider, query: str, value: Any) -> None:
        try:
            await tier.set(query, value, ttl=self._ttl)
        except Exception as exc:  # noqa: BLE001
            self._tier_failed("cache_write_failed", tier, query, exc)

    def _tier_failed(self, event: str, tier: ICacheProvider, query: str, exc: Exception) -> None:
        self._storage_errors += 1
        _logger.warning(
            event,
            query=query,
            tier="durable" if tier is self._secondary else "memory",
            error_type=type(exc).__name__,
            error=str(exc),
        )

    def _detach(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Lifecycle / monitoring
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            negative_hits=self._negative_hits,
            misses=self._misses,
            deduplicated=self._deduplicated,
            upstream_calls=self._upstream_calls,
            storage_errors=self._storage_errors,
            pending=len(self._pending),
        )

    async def flush(self) -> None:
        """Wait for all detached durable writes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Flush pending writes and close both tiers."""
        await self.flush()
        await self._memory.close()
        if self._secondary is not None:
            await self._secondary.close()
