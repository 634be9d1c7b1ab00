# Middleware package init
"""
StackQA Backend — Middleware Package
=====================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    - Rate Limit rejects over-budget clients before any work is done
    - Request ID sets the correlation ID every later log line carries
    - Logging writes one access line per request with status and duration

Responses pass back through the chain in reverse order.
"""
