"""In-memory cache storage.

Per-process only and lost on restart. All operations complete without
suspending, so each put is atomic from the event loop's point of view and
concurrent writes to one key are simply last-write-wins.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

import httpx

from leaf_tracker.adapters.cache.base import (
    AbstractCacheStorage,
    AbstractCacheStore,
    CachedResponse,
    cache_key,
)

logger = logging.getLogger(__name__)


class InMemoryCacheStore(AbstractCacheStore):
    """A named store keeping entries ordered by most recent write."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCacheStore(name={self.name!r}, entries={len(self._entries)}, "
            f"hits={self._hits}, misses={self._misses})"
        )

    def __len__(self) -> int:
        return len(self._entries)

    async def match(self, request: httpx.Request) -> httpx.Response | None:
        key = cache_key(request)
        snapshot = self._entries.get(key)
        if snapshot is None:
            self._misses += 1
            logger.debug("cache.miss", extra={"cache_name": self.name, "cache_key": key})
            return None

        self._hits += 1
        logger.debug("cache.hit", extra={"cache_name": self.name, "cache_key": key})
        return snapshot.to_response(request)

    async def put(self, request: httpx.Request, snapshot: CachedResponse) -> None:
        key = cache_key(request)
        self._entries[key] = snapshot
        self._entries.move_to_end(key)
        logger.debug(
            "cache.set",
            extra={"cache_name": self.name, "cache_key": key, "size": len(self._entries)},
        )

    async def delete(self, request: httpx.Request) -> bool:
        return self._entries.pop(cache_key(request), None) is not None

    async def keys(self) -> list[str]:
        return list(self._entries)

    def stats(self) -> dict[str, int | str]:
        """Return lightweight store metrics without exposing values."""

        return {
            "name": self.name,
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
        }


class InMemoryCacheStorage(AbstractCacheStorage):
    """Process-local registry of named stores."""

    def __init__(self) -> None:
        self._stores: dict[str, InMemoryCacheStore] = {}

    async def open(self, name: str) -> InMemoryCacheStore:
        store = self._stores.get(name)
        if store is None:
            store = InMemoryCacheStore(name)
            self._stores[name] = store
        return store

    async def has(self, name: str) -> bool:
        return name in self._stores

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None

    async def keys(self) -> list[str]:
        return list(self._stores)
