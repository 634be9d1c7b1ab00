"""
StackQA Backend — Rate Limiting Middleware
===========================================

What:  Per-client sliding window rate limiter with a tighter budget for the
       sign-up/sign-in endpoints.
How:   Keeps the request timestamps of each (bucket, client) key in memory.
       On each request timestamps older than the window are dropped; if the
       remaining count reached the limit the request is answered with 429.

Client key:
    - A valid bearer token → "user:<subject>", so one account shares one
      budget across devices and addresses.
    - Otherwise → "ip:<client address>".

Buckets:
    auth     /api/auth/register, /api/auth/login   auth_rate_limit_* settings
    default  everything else                       rate_limit_* settings

Single-process only: each uvicorn worker counts on its own.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from stackqa.config import settings
from stackqa.exceptions import RateLimitExceededError
from stackqa.middleware.request_id import request_id_var
from stackqa.services.auth_service import token_subject

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window rate limiter."""

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
    AUTH_PATHS = {"/api/auth/register", "/api/auth/login"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self._seen = 0

    @staticmethod
    def client_key(request: Request) -> str:
        auth = request.headers.get("Authorization", "")
        scheme, _, credentials = auth.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            subject = token_subject(credentials.strip())
            if subject:
                return f"user:{subject}"
        return "ip:" + (request.client.host if request.client else "unknown")

    def _budget(self, path: str) -> Tuple[str, int, int]:
        if path in self.AUTH_PATHS:
            return "auth", settings.auth_rate_limit_requests, settings.auth_rate_limit_window
        return "default", settings.rate_limit_requests, settings.rate_limit_window

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        bucket, limit, window = self._budget(path)
        key = (bucket, self.client_key(request))

        now = time.time()
        window_start = now - window
        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= limit:
            retry_after = int(timestamps[0] + window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s on %s bucket: %d requests in %ds",
                key[1], bucket, len(timestamps), window,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive(now)

        return await call_next(request)

    def _cleanup_inactive(self, now: float) -> None:
        """Drop keys whose newest request fell out of the longest window."""
        horizon = now - max(settings.rate_limit_window, settings.auth_rate_limit_window)
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < horizon
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
