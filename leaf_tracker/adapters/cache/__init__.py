"""Cache storage adapters used by the offline cache manager."""

from leaf_tracker.adapters.cache.base import (
    AbstractCacheStorage,
    AbstractCacheStore,
    CachedResponse,
    cache_key,
)
from leaf_tracker.adapters.cache.in_memory import InMemoryCacheStorage, InMemoryCacheStore

__all__ = [
    "AbstractCacheStorage",
    "AbstractCacheStore",
    "CachedResponse",
    "InMemoryCacheStorage",
    "InMemoryCacheStore",
    "cache_key",
]
