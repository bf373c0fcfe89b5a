"""
HTTP middleware: request correlation and request timing.

``RequestIDMiddleware`` honours an incoming ``X-Request-ID`` (set by the
gateway) or generates one, exposes it on ``request.state.request_id`` and
echoes it on the response.  The request id and the forwarded ``X-User-ID``
are published to the logging context for the duration of the request.

``RequestTimingMiddleware`` adds ``X-Process-Time`` and logs slow requests.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from fundry.core.logging import request_id_var, user_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-ID"

# Requests slower than this are logged at WARNING.
SLOW_REQUEST_MS = 500


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request/response cycle with a request id and its caller."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        rid_token = request_id_var.set(request_id)
        uid_token = user_id_var.set(request.headers.get(USER_ID_HEADER))
        try:
            response = await call_next(request)
        finally:
            user_id_var.reset(uid_token)
            request_id_var.reset(rid_token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Process-Time`` and logs the request's duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"

        slow = elapsed_ms > SLOW_REQUEST_MS
        logger.log(
            logging.WARNING if slow else logging.DEBUG,
            "%s %s → %d in %.2fms%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            " (SLOW)" if slow else "",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
            },
        )
        return response
