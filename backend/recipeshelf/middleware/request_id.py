"""
RecipeShelf Backend: Request ID Middleware
===========================================

What:  Assigns each request a short correlation ID and echoes it back.
How:   Reuses a client-sent X-Request-ID or generates one, stores it in a
       ContextVar for log lines, and sets it on the response headers.
When:  Runs before logging, so every access and error log line carries it.

Thumbnail errors are logged with this ID plus the object path; a support
request quoting X-Request-ID finds the exact decode or store failure.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests share one thread
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs are echoed into headers and logs; keep them short
MAX_REQUEST_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a unique ID to each request for tracing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Request-ID", "")[:MAX_REQUEST_ID_LENGTH]
        rid = supplied or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
