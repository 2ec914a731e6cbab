"""Request correlation and access logging for the edge.

Every request gets an id (taken from the configured request id header or
freshly generated) that is visible to all log records emitted while it is
handled and echoed back to the caller. Each request then produces exactly one
``http.request`` access record carrying the status and duration. The caller is
identified there only by the hash of its rate-limit client id, so access logs
line up with ``rate_limit.*`` events without storing addresses.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from leaf_tracker.core.config import settings
from leaf_tracker.core.logging import clear_request_id, hash_identifier, set_request_id
from leaf_tracker.core.rate_limit import identify_client

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Request-Duration-ms"


def _access_extra(request: Request, request_id: str, duration_ms: float) -> dict[str, object]:
    return {
        "request_id": request_id,
        "method": request.method,
        "route": request.url.path,
        "client_hash": hash_identifier(identify_client(request)),
        "duration_ms": round(duration_ms, 2),
    }


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id to the request and write its access log record.

    A failure inside the stack is logged as ``http.request_failed`` and
    re-raised so the exception handlers still produce the response.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.exception("http.request_failed", extra=_access_extra(request, request_id, duration_ms))
        raise
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "http.request",
        extra={**_access_extra(request, request_id, duration_ms), "status_code": response.status_code},
    )
    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{duration_ms:.2f}")
    return response
