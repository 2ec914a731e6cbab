"""Rate limiting for the HTTP layer.

This module wires the admission controller adapter into FastAPI handlers.

Design goals:
- Explicit state: the controller instance lives on ``app.state.rate_limiter``
  (built by the app factory), so every app, and every test, owns its registry.
- Observability: every limited response carries X-RateLimit-* headers,
  whether the request was admitted or not.
- Denial is a response, not an exception: throttled callers get a 429 with a
  retry estimate and the wrapped handler never runs.
"""

from __future__ import annotations

import functools
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from leaf_tracker.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from leaf_tracker.adapters.rate_limit.in_memory import SlidingWindowRateLimiter
from leaf_tracker.core.config import AppSettings, settings
from leaf_tracker.core.logging import hash_identifier
from leaf_tracker.schemas.rate_limit import RateLimitExceededResponse

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

Handler = Callable[[Request], Awaitable[Response]]


@dataclass(frozen=True)
class RateLimitPresets:
    """Requests-per-window budgets by call-site cost.

    Attributes:
        analysis: Expensive AI analysis endpoints.
        subscription: Write endpoints.
        read: Read endpoints.
        webhook: Webhook receivers.
    """

    analysis: int = 30
    subscription: int = 20
    read: int = 100
    webhook: int = 50

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "RateLimitPresets":
        return cls(
            analysis=app_settings.rate_limit_analysis,
            subscription=app_settings.rate_limit_subscription,
            read=app_settings.rate_limit_read,
            webhook=app_settings.rate_limit_webhook,
        )


RATE_LIMITS = RateLimitPresets.from_settings(settings.app)


def build_rate_limiter(app_settings: AppSettings | None = None) -> SlidingWindowRateLimiter:
    """Create an admission controller from configuration."""

    cfg = app_settings or settings.app
    return SlidingWindowRateLimiter(
        window_seconds=cfg.rate_limit_window_seconds,
        sweep_interval_seconds=cfg.rate_limit_sweep_interval_seconds,
    )


def identify_client(request: Request) -> str:
    """Resolve the client identifier used as the rate limit key.

    Precedence:
    1. First address of ``X-Forwarded-For`` (the original client in a proxy
       chain).
    2. ``X-Real-IP``.
    3. The direct peer address.
    4. The literal ``"unknown"`` bucket.

    Args:
        request: Incoming request.

    Returns:
        Client identifier string (never empty).
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_seconds),
    }


def _get_limiter(request: Request) -> AbstractRateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("app.state.rate_limiter is not configured; build the app with create_app()")
    return limiter


def _too_many_requests(result: RateLimitResult) -> JSONResponse:
    minutes = math.ceil(result.reset_seconds / 60)
    body = RateLimitExceededResponse(
        error="Rate limit exceeded",
        message=f"Too many requests. Please try again in {minutes} minutes.",
        retry_after=result.reset_seconds,
        limit=result.limit,
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=body.model_dump(by_alias=True),
    )


def enforce(
    limit: int,
    handler: Handler | None = None,
    *,
    limiter: AbstractRateLimiter | None = None,
):
    """Wrap a request handler with per-client admission control.

    Usable directly (``enforce(RATE_LIMITS.read, handler)``) or as a decorator
    (``@enforce(RATE_LIMITS.read)``). The handler must accept the Request as
    its only argument and return a Response.

    For every call the client id is resolved and checked. The three
    X-RateLimit-* headers are attached to the outgoing response. On denial a
    ``Retry-After`` header is added and a 429 JSON body is returned without
    invoking the handler.

    Args:
        limit: Requests allowed per window for this call site.
        handler: Handler to wrap; omit to get a decorator.
        limiter: Controller to use; defaults to ``request.app.state.rate_limiter``.

    Returns:
        The wrapped handler, or a decorator when ``handler`` is omitted.
    """

    if handler is None:
        return functools.partial(enforce, limit, limiter=limiter)

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        if not settings.app.rate_limit_enabled:
            return await handler(request)

        active_limiter = limiter if limiter is not None else _get_limiter(request)
        client_id = identify_client(request)
        result = active_limiter.check_admission(client_id, limit)
        headers = rate_limit_headers(result)

        log_extra = {
            "client_hash": hash_identifier(client_id),
            "route": request.url.path,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_s": result.reset_seconds,
        }

        if not result.allowed:
            logger.warning("rate_limit.exceeded", extra=log_extra)
            response: Response = _too_many_requests(result)
            headers["Retry-After"] = str(result.reset_seconds)
        else:
            logger.debug("rate_limit.allowed", extra=log_extra)
            response = await handler(request)

        response.headers.update(headers)
        return response

    return wrapper
