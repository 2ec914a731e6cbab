"""Offline cache manager.

A host-agnostic rendition of a service worker's caching policy. One
``OfflineCacheManager`` is one cache generation: it owns a static-asset store
and an API-data store, both tagged with its version string, and walks the
lifecycle ``parsed -> installing -> installed -> activating -> activated``
(or ``redundant`` when its install fails or a newer generation replaces it).

Routing per intercepted request:

- API namespace: network first. Reads are persisted in the background on
  success and answered from the API store (or an offline placeholder) when
  the network fails. Mutating requests bypass the cache entirely.
- Everything else: cache first, with a background revalidation on every hit.
  Navigation requests fall back to the cached offline document.

A response that is going to be stored is buffered in full (``CachedResponse``
snapshot) before it is handed back, since its body stream can only be read
once; the caller then gets an already-read response. Only the store write
itself runs as a detached background task; write failures are logged and
swallowed. ``drain()`` awaits whatever is still in flight.

The manager does not decide when it becomes active; a host (see
``leaf_tracker.services.cache_registration``) drives ``on_install`` and
``on_activate`` and routes requests to ``on_fetch``.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Iterable, Mapping, Protocol

import httpx
from pydantic import ValidationError

from leaf_tracker.adapters.cache.base import AbstractCacheStorage, CachedResponse
from leaf_tracker.core.config import CacheSettings, settings
from leaf_tracker.core.errors import CacheInstallError
from leaf_tracker.schemas.offline_cache import ControlCommand, ControlMessage, OfflinePlaceholder

logger = logging.getLogger(__name__)

Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]

# Fetch rejections (unreachable host, timeout, protocol failure). A response
# with an error status is not a network failure.
NETWORK_ERRORS: tuple[type[BaseException], ...] = (httpx.RequestError,)

READ_METHODS = frozenset({"GET", "HEAD"})


class GenerationState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class CacheHost(Protocol):
    """What a manager needs from whoever hosts it."""

    async def skip_waiting(self, manager: "OfflineCacheManager") -> None: ...


def is_navigation_request(request: httpx.Request) -> bool:
    """Whether ``request`` loads a full page rather than a subresource."""

    if request.headers.get("sec-fetch-mode", "").lower() == "navigate":
        return True
    return request.method == "GET" and "text/html" in request.headers.get("accept", "")


class OfflineCacheManager:
    """One cache generation and its fetch-routing policy."""

    def __init__(
        self,
        *,
        storage: AbstractCacheStorage,
        fetch: Fetch,
        version: str,
        static_assets: Iterable[str],
        scope: str,
        name_prefix: str = "leaf-tracker-",
        api_prefix: str = "/api/",
        offline_document: str = "/index.html",
        skip_waiting_on_install: bool = False,
    ) -> None:
        """Initialize a generation.

        Args:
            storage: Cache storage shared by every generation.
            fetch: Network access; resolves to a response or raises an
                ``httpx.RequestError`` when the network is unreachable.
            version: Generation tag embedded in the store names.
            static_assets: Manifest pre-cached at install time. Relative
                entries resolve against ``scope``.
            scope: Origin of the intercepted application.
            name_prefix: Prefix shared by every store this system owns.
            api_prefix: Path prefix routed to the network-first strategy.
            offline_document: Cached document served to failed navigations.
            skip_waiting_on_install: Ask the host to activate immediately once
                installed instead of waiting for old clients to go away.

        Raises:
            ValueError: If version or name_prefix is empty.
        """
        if not version:
            raise ValueError("version must be a non-empty string")
        if not name_prefix:
            raise ValueError("name_prefix must be a non-empty string")

        self.version = version
        self.name_prefix = name_prefix
        self.static_cache_name = f"{name_prefix}{version}"
        self.api_cache_name = f"{name_prefix}api-{version}"
        self.api_prefix = api_prefix
        self.scope = httpx.URL(scope)
        self.static_assets = tuple(static_assets)
        self.offline_document = offline_document
        self.state = GenerationState.PARSED
        self.skip_waiting_requested = False

        self._storage = storage
        self._fetch = fetch
        self._skip_waiting_on_install = skip_waiting_on_install
        self._host: CacheHost | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_settings(
        cls,
        *,
        storage: AbstractCacheStorage,
        fetch: Fetch,
        cache_settings: CacheSettings | None = None,
    ) -> "OfflineCacheManager":
        cfg = cache_settings or settings.cache
        return cls(
            storage=storage,
            fetch=fetch,
            version=cfg.version,
            static_assets=cfg.static_assets,
            scope=cfg.scope,
            name_prefix=cfg.name_prefix,
            api_prefix=cfg.api_prefix,
            offline_document=cfg.offline_document,
            skip_waiting_on_install=cfg.skip_waiting_on_install,
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"OfflineCacheManager(version={self.version!r}, state={self.state.value})"

    def bind(self, host: CacheHost) -> None:
        self._host = host

    @property
    def current_cache_names(self) -> frozenset[str]:
        return frozenset({self.static_cache_name, self.api_cache_name})

    def owns(self, cache_name: str) -> bool:
        """Whether ``cache_name`` belongs to this system (any generation)."""
        return cache_name.startswith(self.name_prefix)

    def resolve(self, url: str) -> httpx.URL:
        return self.scope.join(url)

    # Lifecycle

    async def on_install(self) -> None:
        """Pre-populate the static store with the complete manifest.

        All or nothing: every manifest URL must fetch with a 2xx status
        before anything is written.

        Raises:
            CacheInstallError: If any manifest entry fails to fetch or store.
        """
        self.state = GenerationState.INSTALLING
        logger.info(
            "offline_cache.installing",
            extra={"cache_version": self.version, "assets": len(self.static_assets)},
        )

        requests = [httpx.Request("GET", self.resolve(url)) for url in self.static_assets]
        outcomes = await asyncio.gather(
            *(self._fetch_asset(request) for request in requests),
            return_exceptions=True,
        )

        failed_urls = [
            str(request.url)
            for request, outcome in zip(requests, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if failed_urls:
            self.state = GenerationState.REDUNDANT
            raise CacheInstallError(
                code="cache_install_failed",
                message=f"Failed to pre-cache {len(failed_urls)} static asset(s)",
                details={"cache_version": self.version, "failed_urls": failed_urls},
            )

        try:
            store = await self._storage.open(self.static_cache_name)
            for request, snapshot in zip(requests, outcomes):
                await store.put(request, snapshot)
        except Exception as exc:
            self.state = GenerationState.REDUNDANT
            await self._storage.delete(self.static_cache_name)
            raise CacheInstallError(
                code="cache_install_failed",
                message=f"Failed to write static store: {exc}",
                details={"cache_version": self.version},
            ) from exc

        self.state = GenerationState.INSTALLED
        logger.info("offline_cache.installed", extra={"cache_version": self.version})

        if self._skip_waiting_on_install:
            await self.skip_waiting()

    async def _fetch_asset(self, request: httpx.Request) -> CachedResponse:
        response = await self._fetch(request)
        if not response.is_success:
            await response.aclose()
            raise httpx.HTTPStatusError(
                f"manifest entry answered {response.status_code}",
                request=request,
                response=response,
            )
        return await CachedResponse.from_response(response)

    async def on_activate(self) -> list[str]:
        """Delete every owned store that is not one of this generation's.

        Returns:
            Names of the deleted stores.
        """
        self.state = GenerationState.ACTIVATING
        deleted: list[str] = []

        for name in await self._storage.keys():
            if not self.owns(name) or name in self.current_cache_names:
                continue
            try:
                if await self._storage.delete(name):
                    deleted.append(name)
                    logger.info(
                        "offline_cache.store_deleted",
                        extra={"cache_name": name, "cache_version": self.version},
                    )
            except Exception:
                logger.warning(
                    "offline_cache.store_delete_failed",
                    extra={"cache_name": name},
                    exc_info=True,
                )

        self.state = GenerationState.ACTIVATED
        logger.info(
            "offline_cache.activated",
            extra={"cache_version": self.version, "deleted_stores": len(deleted)},
        )
        return deleted

    def retire(self) -> None:
        """Mark this generation as replaced."""
        self.state = GenerationState.REDUNDANT

    # Control channel

    async def on_message(self, message: ControlMessage | Mapping[str, Any] | Any) -> None:
        """Handle a control message posted by a host page.

        ``SKIP_WAITING`` activates this generation if it is waiting;
        ``CLEAR_CACHE`` deletes every store this system owns. Anything else
        is ignored.
        """
        try:
            envelope = (
                message
                if isinstance(message, ControlMessage)
                else ControlMessage.model_validate(message)
            )
        except ValidationError:
            logger.debug("offline_cache.message_ignored", extra={"reason": "malformed"})
            return

        command = envelope.command
        if command is ControlCommand.SKIP_WAITING:
            logger.info("offline_cache.skip_waiting", extra={"cache_version": self.version})
            await self.skip_waiting()
        elif command is ControlCommand.CLEAR_CACHE:
            await self.clear_all()
        else:
            logger.debug(
                "offline_cache.message_ignored",
                extra={"reason": "unknown_type", "message_type": envelope.type},
            )

    async def skip_waiting(self) -> None:
        self.skip_waiting_requested = True
        if self._host is not None:
            await self._host.skip_waiting(self)

    async def clear_all(self) -> list[str]:
        """Delete every store this system owns, regardless of generation."""
        deleted = [name for name in await self._storage.keys() if self.owns(name)]
        for name in deleted:
            await self._storage.delete(name)
        logger.info("offline_cache.cleared", extra={"deleted_stores": len(deleted)})
        return deleted

    # Fetch routing

    async def on_fetch(self, request: httpx.Request) -> httpx.Response:
        """Answer an intercepted request according to its URL class."""
        if request.url.path.startswith(self.api_prefix):
            return await self._network_first(request)
        return await self._cache_first(request)

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        if request.method not in READ_METHODS:
            return await self._fetch(request)

        try:
            response = await self._fetch(request)
        except NETWORK_ERRORS as exc:
            logger.info(
                "offline_cache.network_failed",
                extra={"url_path": request.url.path, "error_type": type(exc).__name__},
            )
            cached = await self._match(self.api_cache_name, request)
            if cached is not None:
                return cached
            return self._offline_placeholder(request)

        if request.method == "GET" and response.is_success:
            snapshot = await CachedResponse.from_response(response)
            self._spawn(self._put(self.api_cache_name, request, snapshot))
        return response

    async def _cache_first(self, request: httpx.Request) -> httpx.Response:
        # Stores only hold GET entries
        if request.method != "GET":
            return await self._fetch(request)

        cached = await self._match(self.static_cache_name, request)
        if cached is not None:
            self._spawn(self._revalidate(request))
            return cached

        try:
            response = await self._fetch(request)
        except NETWORK_ERRORS:
            if is_navigation_request(request):
                offline_request = httpx.Request("GET", self.resolve(self.offline_document))
                offline = await self._match(self.static_cache_name, offline_request)
                if offline is not None:
                    logger.info(
                        "offline_cache.offline_document",
                        extra={"url_path": request.url.path},
                    )
                    return offline
            raise

        if not response.is_success:
            return response

        snapshot = await CachedResponse.from_response(response)
        self._spawn(self._put(self.static_cache_name, request, snapshot))
        return response

    async def _revalidate(self, request: httpx.Request) -> None:
        try:
            response = await self._fetch(request)
        except NETWORK_ERRORS as exc:
            logger.debug(
                "offline_cache.revalidate_failed",
                extra={"url_path": request.url.path, "error_type": type(exc).__name__},
            )
            return

        if not response.is_success:
            await response.aclose()
            return
        snapshot = await CachedResponse.from_response(response)
        await self._put(self.static_cache_name, request, snapshot)

    async def _match(self, cache_name: str, request: httpx.Request) -> httpx.Response | None:
        try:
            store = await self._storage.open(cache_name)
            return await store.match(request)
        except Exception:
            logger.warning(
                "offline_cache.read_failed",
                extra={"cache_name": cache_name, "url_path": request.url.path},
                exc_info=True,
            )
            return None

    async def _put(self, cache_name: str, request: httpx.Request, snapshot: CachedResponse) -> None:
        # A retired generation's stores were purged by its successor
        if self.state is GenerationState.REDUNDANT:
            logger.debug(
                "offline_cache.write_skipped",
                extra={"cache_name": cache_name, "url_path": request.url.path},
            )
            return
        try:
            store = await self._storage.open(cache_name)
            await store.put(request, snapshot)
        except Exception:
            logger.warning(
                "offline_cache.write_failed",
                extra={"cache_name": cache_name, "url_path": request.url.path},
                exc_info=True,
            )

    def _offline_placeholder(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=OfflinePlaceholder().model_dump(), request=request)

    # Background tasks

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "offline_cache.background_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for in-flight background writes and revalidations."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
