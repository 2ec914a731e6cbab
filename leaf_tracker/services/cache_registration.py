"""Generation hand-over for the offline cache manager.

``CacheRegistration`` plays the part a browser's service worker registration
plays: it installs new generations, keeps an installed generation waiting
while clients of the previous one are still connected, activates it when they
are gone (or when the generation asks to skip waiting), and retires the
generation it replaces.

Activation claims every connected client: transports look up
``registration.active`` per request, so the switch is immediate for all of
them, not only for clients connected afterwards.
"""

from __future__ import annotations

import logging

from leaf_tracker.core.errors import CacheInstallError
from leaf_tracker.services.offline_cache import GenerationState, OfflineCacheManager

logger = logging.getLogger(__name__)


class CacheRegistration:
    """Slots for the installing, waiting and active generations."""

    def __init__(self) -> None:
        self.installing: OfflineCacheManager | None = None
        self.waiting: OfflineCacheManager | None = None
        self.active: OfflineCacheManager | None = None
        self._clients = 0

    @property
    def connected_clients(self) -> int:
        return self._clients

    async def register(self, manager: OfflineCacheManager) -> OfflineCacheManager | None:
        """Install ``manager`` and activate it when nothing holds it back.

        Registering the version that is already active is a no-op.

        Args:
            manager: New generation.

        Returns:
            The generation now installed (waiting or active), or None when
            the install failed and the previous generation keeps serving.
        """
        if self.active is not None and self.active.version == manager.version:
            logger.info("offline_cache.unchanged", extra={"cache_version": manager.version})
            return self.active

        manager.bind(self)
        self.installing = manager
        try:
            await manager.on_install()
        except CacheInstallError as exc:
            logger.error(
                "offline_cache.install_failed",
                extra={
                    "cache_version": manager.version,
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "details": exc.details,
                },
            )
            return None
        finally:
            self.installing = None

        if self.waiting is not None and self.waiting is not manager:
            self.waiting.retire()
        self.waiting = manager

        if self.active is None or self._clients == 0 or manager.skip_waiting_requested:
            await self._activate(manager)
        else:
            logger.info(
                "offline_cache.waiting",
                extra={"cache_version": manager.version, "clients": self._clients},
            )
        return manager

    async def skip_waiting(self, manager: OfflineCacheManager) -> None:
        """Activate ``manager`` now if it is the waiting generation.

        While it is still installing, the request is remembered on the
        manager and honoured as soon as the install succeeds.
        """
        if manager is self.waiting and manager.state is GenerationState.INSTALLED:
            await self._activate(manager)

    def connect(self) -> None:
        self._clients += 1

    async def disconnect(self) -> None:
        """Forget one client; the waiting generation activates once none remain."""
        self._clients = max(0, self._clients - 1)
        if self._clients == 0 and self.waiting is not None:
            await self._activate(self.waiting)

    async def _activate(self, manager: OfflineCacheManager) -> None:
        previous = self.active
        if self.waiting is manager:
            self.waiting = None

        await manager.on_activate()
        self.active = manager

        if previous is not None and previous is not manager:
            previous.retire()
        logger.info(
            "offline_cache.clients_claimed",
            extra={
                "cache_version": manager.version,
                "previous_version": previous.version if previous else None,
                "clients": self._clients,
            },
        )
