"""
RecipeShelf Backend: Rate Limiting Middleware
==============================================

What:  Per-IP sliding window rate limiter for the media routes.
Why:   Each thumbnail costs a download plus a decode/resize/encode; without
       a limit one client can saturate the worker threads.
How:   Keeps a deque of monotonic timestamps per client IP.

Algorithm: Sliding Window Log
    1. Pop timestamps that fell out of the window from the left
    2. If the deque is still full, reject with 429 + Retry-After
    3. Otherwise append now and continue

Only /thumbnails/ and /objects/ are counted; health checks and the API docs
are always reachable. Single-process only: every uvicorn worker keeps its
own counters.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from recipeshelf.config import settings
from recipeshelf.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

LIMITED_PREFIXES = ("/thumbnails/", "/objects/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings, read per request so tests can patch them):
        rate_limit_requests: Max media requests per window
        rate_limit_window: Window duration in seconds
    """

    # Idle clients are dropped after this many admitted requests
    SWEEP_EVERY = 1000

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._windows: Dict[str, Deque[float]] = defaultdict(deque)
        self._admitted = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(LIMITED_PREFIXES):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = settings.rate_limit_window
        now = time.monotonic()

        timestamps = self._windows[client_ip]
        while timestamps and timestamps[0] <= now - window:
            timestamps.popleft()

        if len(timestamps) >= settings.rate_limit_requests:
            retry_after = int(timestamps[0] + window - now) + 1
            exc = RateLimitExceededError(retry_after=retry_after, context={"client_ip": client_ip})
            logger.warning(
                "Rate limit exceeded for %s on %s: %d requests in %ds",
                client_ip,
                request.url.path,
                len(timestamps),
                window,
            )
            # Raised here the app's exception handlers would never see it
            return JSONResponse(
                status_code=429,
                content={"error": exc.message},
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)
        self._admitted += 1
        if self._admitted % self.SWEEP_EVERY == 0:
            self._sweep(now - window)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        idle = [ip for ip, stamps in self._windows.items() if not stamps or stamps[-1] <= window_start]
        for ip in idle:
            del self._windows[ip]
        if idle:
            logger.debug("Dropped %d idle rate limit windows", len(idle))
