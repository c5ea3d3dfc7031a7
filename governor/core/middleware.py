"""HTTP middleware for request correlation.

Every request/response pair carries a request id: the incoming
``X-Request-ID`` header (name from ``LOG_REQUEST_ID_HEADER``) or a fresh
UUID. The id is bound to a context variable for the lifetime of the request,
so governor and service logs emitted while handling it are correlated.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from governor.core.config import settings
from governor.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id, time the request, and echo both in the response."""

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
