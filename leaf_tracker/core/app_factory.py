from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated instances with their own rate limiter and upstream client.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from leaf_tracker.adapters.http.upstream import UpstreamClient
from leaf_tracker.adapters.rate_limit.base import AbstractRateLimiter
from leaf_tracker.api.routes import health_router, upstream_router
from leaf_tracker.core.config import settings
from leaf_tracker.core.exception_handlers import setup_exception_handlers
from leaf_tracker.core.logging import configure_logging
from leaf_tracker.core.middleware import request_id_middleware
from leaf_tracker.core.rate_limit import build_rate_limiter


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    upstream: UpstreamClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Admission controller; built from settings when omitted.
        upstream: Upstream forwarder; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    upstream_client = upstream if upstream is not None else UpstreamClient.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await upstream_client.aclose()

    app = FastAPI(
        title="Leaf Tracker Edge",
        description=(
            "Rate-limited edge for the leaf collection tracker. Forwards street "
            "status reads, subscriptions, pile analysis and status webhooks to "
            "their upstream services and reports X-RateLimit-* headers on every call."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    if rate_limiter is None:
        rate_limiter = build_rate_limiter(settings.app)
    app.state.rate_limiter = rate_limiter
    app.state.upstream = upstream_client

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(upstream_router)
    app.include_router(health_router)

    return app
