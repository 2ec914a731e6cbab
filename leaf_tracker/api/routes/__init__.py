from __future__ import annotations

from leaf_tracker.api.routes.health import router as health_router
from leaf_tracker.api.routes.upstream import router as upstream_router

__all__ = ["health_router", "upstream_router"]
