"""
StackQA Backend — Request Logging Middleware
=============================================

What:  One access log line per HTTP request on the `stackqa.access` logger.
How:   Measures wall time around the downstream handler and logs method,
       path, status, duration and client address. Level follows the status:
       5xx → ERROR, 4xx → WARNING, everything else → INFO.

Not logged: request bodies, Authorization headers, query strings (cursor and
tag values are harmless, but tokens must never reach the log).

Live streams (…/live) are logged when the handler returns the streaming
response, i.e. at connect time; the duration is the time to first byte.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from stackqa.middleware.request_id import request_id_var

logger = logging.getLogger("stackqa.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
            client_ip,
            extra={
                "request_id": request_id_var.get(""),
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
