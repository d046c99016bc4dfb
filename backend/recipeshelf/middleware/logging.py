"""
RecipeShelf Backend: Request Logging Middleware
================================================

What:  One access log line per request: method, path, query, status,
       duration, request ID, client IP.
How:   Measures from middleware entry until the response object is returned.
       For streamed bodies (thumbnails, objects) that is time-to-headers;
       stream completion and aborts are logged by the thumbnail service.

Log levels follow the status code:
    5xx → ERROR, 4xx → WARNING, 2xx/3xx → INFO
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from recipeshelf.middleware.request_id import request_id_var

logger = logging.getLogger("recipeshelf.access")

# Load balancers hit these every few seconds
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs structured information about each HTTP request and response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Query carries w/h/q, which is what distinguishes thumbnail requests
        query = request.url.query
        logger.log(
            log_level,
            "%s %s%s %d %.1fms [%s] from %s",
            request.method,
            path,
            f"?{query}" if query else "",
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
