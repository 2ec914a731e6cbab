"""In-memory sliding-window-log rate limiter.

Notes:
- Per-process only: state is lost on restart and each worker process
  enforces its own limits.
- Exact: every admitted request timestamp inside the window is retained, so
  decisions never approximate. Memory is O(requests in window) per client.
- Stale timestamps are evicted lazily for the checked client and, at most
  once per sweep interval, across the whole registry.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from leaf_tracker.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)

ONE_HOUR_SECONDS = 3600.0
FIVE_MINUTES_SECONDS = 300.0


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Per-client admission controller over a trailing time window.

    Each client owns an ordered list of admission timestamps. A request is
    admitted iff fewer than ``limit`` timestamps are newer than
    ``now - window_seconds``. The limit is chosen per call, so a single
    instance serves every rate-limit tier.
    """

    def __init__(
        self,
        *,
        window_seconds: float = ONE_HOUR_SECONDS,
        sweep_interval_seconds: float = FIVE_MINUTES_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            window_seconds: Length of the trailing window.
            sweep_interval_seconds: Minimum time between full registry sweeps.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If either duration is not positive.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._window_seconds = window_seconds
        self._sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._log_by_client: dict[str, list[float]] = {}
        self._last_sweep = clock()

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def __len__(self) -> int:
        return len(self._log_by_client)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._log_by_client

    def timestamps(self, client_id: str) -> list[float]:
        """Return a copy of the retained timestamps for ``client_id``."""
        with self._lock:
            return list(self._log_by_client.get(client_id, ()))

    def _cutoff(self, now: float) -> float:
        return now - self._window_seconds

    def evict_stale(self, client_id: str, now: float) -> list[float]:
        """Drop timestamps of one client that fell out of the window.

        The client's entry is not removed here even when the filtered log is
        empty; removing idle clients is the sweep's job.

        Args:
            client_id: Client whose log is filtered.
            now: Current UNIX time in seconds.

        Returns:
            The surviving timestamps, oldest first.
        """
        cutoff = self._cutoff(now)
        with self._lock:
            timestamps = [ts for ts in self._log_by_client.get(client_id, ()) if ts > cutoff]
            if client_id in self._log_by_client:
                self._log_by_client[client_id] = timestamps
            return timestamps

    def sweep(self, now: float) -> int:
        """Filter every client log and forget clients with nothing left.

        Args:
            now: Current UNIX time in seconds.

        Returns:
            Number of client entries removed.
        """
        cutoff = self._cutoff(now)
        removed = 0
        with self._lock:
            for client_id in list(self._log_by_client):
                filtered = [ts for ts in self._log_by_client[client_id] if ts > cutoff]
                if filtered:
                    self._log_by_client[client_id] = filtered
                else:
                    del self._log_by_client[client_id]
                    removed += 1
            self._last_sweep = now

        if removed:
            logger.info(
                "rate_limit.sweep",
                extra={"removed_clients": removed, "tracked_clients": len(self._log_by_client)},
            )
        return removed

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep > self._sweep_interval_seconds:
            self.sweep(now)

    def check_admission(self, client_id: str, limit: int) -> RateLimitResult:
        """Admit or deny one request for ``client_id``.

        Admission appends ``now`` to the client's log; denial leaves the log
        untouched, so denied requests do not extend the wait.

        Args:
            client_id: Client identifier.
            limit: Requests allowed per window. ``0`` denies everything.

        Returns:
            RateLimitResult with the decision, the remaining budget and the
            seconds until the oldest retained request leaves the window.

        Raises:
            ValueError: If client_id is empty or limit is negative.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")
        if limit < 0:
            raise ValueError("limit must be >= 0")

        now = self._clock()

        with self._lock:
            self._maybe_sweep(now)

            timestamps = self.evict_stale(client_id, now)
            allowed = len(timestamps) < limit
            if allowed:
                timestamps.append(now)
                self._log_by_client[client_id] = timestamps

            remaining = max(0, limit - len(timestamps))
            if timestamps:
                reset_seconds = max(0, math.ceil(timestamps[0] + self._window_seconds - now))
            else:
                reset_seconds = 0

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=remaining,
            reset_seconds=reset_seconds,
        )
