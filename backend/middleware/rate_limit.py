"""
Simple in-memory rate limiter for the password probe.

Prevents brute-force password guessing by limiting /api/auth attempts
per IP address. Uses a sliding window of timestamps stored in memory.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# Rate-limited paths and their limits: (max_requests, window_seconds)
DEFAULT_RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "/api/auth": (5, 60),
}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window rate limiter for sensitive endpoints.

    Attributes:
        limits: Path -> (max_requests, window_seconds).
        _counters: (client_ip, path) -> request timestamps inside the window.
    """

    def __init__(self, app, limits: Optional[Dict[str, Tuple[int, int]]] = None):
        super().__init__(app)
        self.limits = dict(limits or DEFAULT_RATE_LIMITS)
        self._counters: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self._last_cleanup = time.time()
        logger.info(f"RateLimitMiddleware active for {', '.join(self.limits)}")

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request, respecting X-Forwarded-For."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_stale(self, now: float) -> None:
        # Only clean up every 60 seconds to avoid overhead
        if now - self._last_cleanup < 60:
            return
        self._last_cleanup = now

        cutoff = now - max(w for _, w in self.limits.values())
        for key in list(self._counters):
            self._counters[key] = [t for t in self._counters[key] if t > cutoff]
            if not self._counters[key]:
                del self._counters[key]

    async def dispatch(self, request: Request, call_next):
        """Return 429 once a client exceeds the limit for a path."""
        if request.method != "POST":
            return await call_next(request)

        path = request.url.path.rstrip("/")
        if path not in self.limits:
            return await call_next(request)

        max_requests, window_seconds = self.limits[path]
        client_ip = self._get_client_ip(request)
        key = (client_ip, path)
        now = time.time()

        self._cleanup_stale(now)
        self._counters[key] = [t for t in self._counters[key] if t > now - window_seconds]

        if len(self._counters[key]) >= max_requests:
            retry_after = max(1, int(window_seconds - (now - self._counters[key][0])))
            logger.warning(
                f"Rate limit hit: {client_ip} on {path} "
                f"({len(self._counters[key])}/{max_requests} in {window_seconds}s)"
            )
            return JSONResponse(
                status_code=429,
                content={"code": -1, "error": f"Too many attempts. Try again in {retry_after} seconds."},
                headers={"Retry-After": str(retry_after)},
            )

        self._counters[key].append(now)
        return await call_next(request)
