"""httpx transport that routes requests through the offline cache manager.

Binds the host-agnostic ``OfflineCacheManager`` to real outbound traffic: an
``httpx.AsyncClient`` built on ``OfflineCacheTransport`` has every request
answered by the registration's active generation. Without an active
generation requests go straight to the network.

Usage:
    registration = CacheRegistration()
    network = httpx.AsyncHTTPTransport()
    await registration.register(
        OfflineCacheManager.from_settings(storage=InMemoryCacheStorage(), fetch=network_fetch(network))
    )
    async with create_offline_client(registration, transport=network) as client:
        response = await client.get("http://localhost:8000/api/streets")
"""

from __future__ import annotations

from typing import Any

import httpx

from leaf_tracker.services.cache_registration import CacheRegistration
from leaf_tracker.services.offline_cache import Fetch


def network_fetch(transport: httpx.AsyncBaseTransport) -> Fetch:
    """Expose a transport as the manager's network ``fetch`` callable."""

    return transport.handle_async_request


class OfflineCacheTransport(httpx.AsyncBaseTransport):
    """Intercepts every request of the client it is mounted on.

    Each transport counts as one connected client of the registration, from
    construction until ``aclose``.
    """

    def __init__(
        self,
        registration: CacheRegistration,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registration = registration
        # A caller-supplied transport may be shared with the manager; leave it open
        self._owns_transport = transport is None
        self._transport = transport or httpx.AsyncHTTPTransport()
        registration.connect()
        self._closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        controller = self._registration.active
        if controller is None:
            return await self._transport.handle_async_request(request)
        return await controller.on_fetch(request)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._registration.disconnect()
        if self._owns_transport:
            await self._transport.aclose()


def create_offline_client(
    registration: CacheRegistration,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """Build an ``httpx.AsyncClient`` whose traffic the cache manager intercepts."""

    return httpx.AsyncClient(
        transport=OfflineCacheTransport(registration, transport),
        **client_kwargs,
    )
