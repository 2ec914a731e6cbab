from __future__ import annotations

from fastapi import APIRouter, Request

from leaf_tracker.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check, never rate limited.

    Returns:
        dict: ``status`` plus the number of clients the rate limiter tracks.
    """

    limiter = request.app.state.rate_limiter
    return {
        "status": "ok",
        "rate_limit": {
            "enabled": settings.app.rate_limit_enabled,
            "tracked_clients": len(limiter),
        },
    }
