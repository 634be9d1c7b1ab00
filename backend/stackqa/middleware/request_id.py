"""
StackQA Backend — Request ID Middleware
========================================

What:  Gives every request a short correlation ID, echoes it in the
       X-Request-ID response header, and exposes it to logging.
How:   The ID lives in a ContextVar (coroutine-local); RequestIDLogFilter
       copies it onto every log record as `request_id`, which the log format
       prints.
When:  Runs before the logging middleware so access lines carry the ID.

A client may send its own X-Request-ID to correlate a UI action with the
server's log lines; otherwise an 8-character ID is generated.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

MAX_CLIENT_ID_LENGTH = 64

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDLogFilter(logging.Filter):
    """Adds `request_id` to each record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns or propagates X-Request-ID."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "").strip()[:MAX_CLIENT_ID_LENGTH]
        if not rid:
            rid = str(uuid.uuid4())[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
