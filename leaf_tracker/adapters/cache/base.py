"""Cache storage interfaces.

Mirrors the shape of a browser's CacheStorage: named stores, each mapping a
normalized request (method + URL) to a stored response. Stores are async so a
persistent backend can be dropped in without touching the cache manager.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

# Headers describing the wire encoding of a body we store already decoded
_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def cache_key(request: httpx.Request) -> str:
    """Normalize a request into its cache key (``METHOD url``, no fragment)."""

    return f"{request.method.upper()} {request.url.copy_with(fragment=None)}"


@dataclass(frozen=True)
class CachedResponse:
    """Immutable snapshot of a response: status, headers and decoded body.

    Attributes:
        status_code: HTTP status.
        headers: Response headers, minus transfer-encoding related ones.
        content: Decoded body bytes.
        stored_at: UNIX time the snapshot was taken.
    """

    status_code: int
    headers: tuple[tuple[str, str], ...]
    content: bytes
    stored_at: float = field(default_factory=time.time)

    @classmethod
    async def from_response(cls, response: httpx.Response) -> "CachedResponse":
        """Snapshot ``response``, reading its body if it was not read yet.

        The original response stays readable afterwards.
        """
        content = await response.aread()
        headers = tuple(
            (name, value)
            for name, value in response.headers.items()
            if name.lower() not in _HOP_HEADERS
        )
        return cls(status_code=response.status_code, headers=headers, content=content)

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        """Build a fresh response object from the snapshot."""

        return httpx.Response(
            self.status_code,
            headers=list(self.headers),
            content=self.content,
            request=request,
        )


class AbstractCacheStore(ABC):
    """One named cache store."""

    name: str

    @abstractmethod
    async def match(self, request: httpx.Request) -> httpx.Response | None:
        """Return a fresh copy of the stored response for ``request``, if any."""
        raise NotImplementedError

    @abstractmethod
    async def put(self, request: httpx.Request, snapshot: CachedResponse) -> None:
        """Store (or overwrite) the entry for ``request``."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, request: httpx.Request) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return the cache keys held by this store, oldest write first."""
        raise NotImplementedError


class AbstractCacheStorage(ABC):
    """Registry of named cache stores."""

    @abstractmethod
    async def open(self, name: str) -> AbstractCacheStore:
        """Return the store called ``name``, creating it when missing."""
        raise NotImplementedError

    @abstractmethod
    async def has(self, name: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete the store called ``name``.

        Returns:
            True if a store was deleted.
        """
        raise NotImplementedError

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return store names in creation order."""
        raise NotImplementedError
