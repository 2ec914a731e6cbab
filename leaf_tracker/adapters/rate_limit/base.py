"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the in-process registry can be replaced without touching the routes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single admission check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window requested by the call site.
        remaining: Requests left in the trailing window (never negative).
        reset_seconds: Seconds until the oldest retained request leaves the
            window; 0 when the client has no retained requests.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class AbstractRateLimiter(ABC):
    """Interface for admission controllers."""

    @abstractmethod
    def check_admission(self, client_id: str, limit: int) -> RateLimitResult:
        """Decide whether ``client_id`` may make one more request.

        Args:
            client_id: Client identifier (see ``identify_client``).
            limit: Requests allowed per window for this call site.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError
