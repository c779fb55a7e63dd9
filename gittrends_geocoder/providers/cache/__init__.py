"""Cache storage backends.

MemoryCacheProvider is the per-process LRU tier; SQLiteCacheProvider is the
durable tier that survives restarts.  Both implement ICacheProvider, so the
Cache decorator can take any combination of them.
"""

from gittrends_geocoder.providers.cache.memory_cache import MemoryCacheProvider
from gittrends_geocoder.providers.cache.sqlite_cache import SQLiteCacheProvider

__all__ = ["MemoryCacheProvider", "SQLiteCacheProvider"]
