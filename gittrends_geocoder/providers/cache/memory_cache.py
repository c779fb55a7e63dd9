"""In-memory cache provider using cachetools.

The first tier of the Cache decorator.  Reads and writes never touch I/O,
which is what lets the decorator write a fresh result synchronously before
its pending entry is released.  Values are stored as-is, so a hit returns
the very object that was stored.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import Cache, LRUCache, TTLCache

from gittrends_geocoder.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """Bounded LRU cache backed by ``cachetools``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds.  ``None`` or ``0`` keeps entries until they
        are evicted (``LRUCache``); a positive value expires them
        (``TTLCache``).
    """

    def __init__(self, max_size: int = 1000, ttl: float | None = None) -> None:
        if max_size < 1:
            raise ValueError("max_size must be a positive integer")
        self._max_size = max_size
        self._ttl = ttl if ttl else None
        self._cache: Cache[str, Any]
        if self._ttl is None:
            self._cache = LRUCache(maxsize=max_size)
        else:
            self._cache = TTLCache(maxsize=max_size, ttl=self._ttl)

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        return self.get_nowait(key)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key*.

        The per-item *ttl* is ignored: ``TTLCache`` applies the uniform TTL
        given at construction time.
        """
        self.set_nowait(key, value)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._cache.pop(key, None)
        logger.debug("memory_cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        return key in self._cache

    async def close(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Synchronous access for callers that must not yield
    # ------------------------------------------------------------------

    def get_nowait(self, key: str) -> Any | None:
        value = self._cache.get(key)
        if value is not None:
            logger.debug("memory_cache_hit", key=key)
        return value

    def set_nowait(self, key: str, value: Any) -> None:
        self._cache[key] = value
        logger.debug("memory_cache_set", key=key)
