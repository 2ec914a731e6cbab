"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Rate limit denials are not errors: they are answered with a 429 response by
``leaf_tracker.core.rate_limit.enforce`` and never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict

class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    upstream: str
    cache_version: str
    failed_urls: list[str]
    context: NotRequired[dict[str, Any]]

@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

class UpstreamAppError(AppError):
    """Raised when an external collaborator cannot be reached."""

class CacheInstallError(AppError):
    """Raised when a cache generation fails to pre-populate its static store.

    The generation never activates; the previously active one keeps serving.
    """
