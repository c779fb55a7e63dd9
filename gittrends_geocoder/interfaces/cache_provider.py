"""Abstract base class for cache storage backends.

Defines the key-value contract the :class:`~gittrends_geocoder.pipeline.cache.Cache`
decorator uses for both of its tiers: the in-process LRU tier
(:class:`~gittrends_geocoder.providers.cache.memory_cache.MemoryCacheProvider`)
and the durable tier
(:class:`~gittrends_geocoder.providers.cache.sqlite_cache.SQLiteCacheProvider`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache backends.

    All operations are async so that disk- or network-backed stores do not
    block the event loop.  ``None`` is reserved to mean "absent"; callers
    that need to cache a negative result store a sentinel such as ``False``.
    Backend failures are raised as
    :class:`~gittrends_geocoder.utils.errors.StorageError`.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Parameters
        ----------
        key:
            The cache key to look up.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.  Durable backends must accept pydantic
            models, dicts and booleans.
        ttl:
            Time-to-live in seconds overriding the backend default.
            ``None`` uses the default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key* (no-op if absent)."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    async def close(self) -> None:
        """Release backend resources.  The default implementation does nothing."""
        return None
