"""Rate-limited routes forwarding to the external collaborators.

Every route is wrapped with ``enforce`` at the budget of its cost tier and
passes the call through ``UpstreamClient`` unchanged: same query string, same
body, upstream status and body returned as-is.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter, Request, Response

from leaf_tracker.core.rate_limit import RATE_LIMITS, Handler, enforce

router = APIRouter(prefix="/api", tags=["Upstream"])


@dataclass(frozen=True)
class UpstreamRoute:
    endpoint: str
    method: str
    limit: int
    summary: str


UPSTREAM_ROUTES: tuple[UpstreamRoute, ...] = (
    UpstreamRoute("streets", "GET", RATE_LIMITS.read, "List streets and their collection status"),
    UpstreamRoute("messages", "GET", RATE_LIMITS.read, "List public service messages"),
    UpstreamRoute("check-subscription", "GET", RATE_LIMITS.read, "Check an address subscription"),
    UpstreamRoute("subscribe", "POST", RATE_LIMITS.subscription, "Subscribe to status updates"),
    UpstreamRoute("subscribe-sms", "POST", RATE_LIMITS.subscription, "Subscribe to SMS updates"),
    UpstreamRoute("unsubscribe", "POST", RATE_LIMITS.subscription, "Remove a subscription"),
    UpstreamRoute("analyze-pile", "POST", RATE_LIMITS.analysis, "Analyze a leaf pile photo"),
    UpstreamRoute(
        "notify-status-change", "POST", RATE_LIMITS.webhook, "Receive a street status change"
    ),
)


def _build_handler(route: UpstreamRoute) -> Handler:
    async def forward(request: Request) -> Response:
        upstream = request.app.state.upstream
        body = await request.body()
        upstream_response = await upstream.forward(
            request.method,
            route.endpoint,
            params=request.query_params,
            content=body or None,
            content_type=request.headers.get("content-type"),
        )
        return Response(
            content=upstream_response.content,
            status_code=upstream_response.status_code,
            media_type=upstream_response.headers.get("content-type"),
        )

    forward.__name__ = route.endpoint.replace("-", "_")
    return forward


for _route in UPSTREAM_ROUTES:
    router.add_api_route(
        f"/{_route.endpoint}",
        enforce(_route.limit, _build_handler(_route)),
        methods=[_route.method],
        summary=_route.summary,
    )
