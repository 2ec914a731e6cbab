"""HTTP client for the external collaborators behind the /api routes.

The datastore proxy, the image-analysis webhook and push dispatch all live
outside this service; the routes hand their calls to ``UpstreamClient``,
which forwards them unchanged and reports unreachable upstreams as
``UpstreamAppError``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from leaf_tracker.core.config import UpstreamSettings, settings
from leaf_tracker.core.errors import UpstreamAppError

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Thin async forwarder over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL the endpoint names are appended to.
            api_key: Optional bearer token sent with every call.
            timeout_seconds: Per-request timeout.
            transport: Custom transport (tests use ``httpx.MockTransport``).
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        upstream_settings: UpstreamSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "UpstreamClient":
        cfg = upstream_settings or settings.upstream
        return cls(
            cfg.base_url,
            api_key=cfg.api_key,
            timeout_seconds=cfg.timeout_seconds,
            transport=transport,
        )

    async def forward(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        """Forward one call to ``<base_url>/<endpoint>``.

        Args:
            method: HTTP method.
            endpoint: Endpoint name relative to the base URL.
            params: Query parameters.
            content: Raw request body.
            content_type: Content-Type of ``content``.

        Returns:
            The upstream response, whatever its status.

        Raises:
            UpstreamAppError: If the upstream cannot be reached.
        """
        headers = {"Content-Type": content_type} if content_type else None
        try:
            response = await self._client.request(
                method,
                endpoint.lstrip("/"),
                params=params,
                content=content,
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.warning(
                "upstream.unreachable",
                extra={"endpoint": endpoint, "error_type": type(exc).__name__},
            )
            raise UpstreamAppError(
                code="upstream_unreachable",
                message="The upstream service could not be reached. Please try again later.",
                details={"upstream": endpoint},
            ) from exc

        logger.info(
            "upstream.forwarded",
            extra={
                "endpoint": endpoint,
                "method": method,
                "status_code": response.status_code,
            },
        )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
