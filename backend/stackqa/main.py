"""
StackQA Backend — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers and routers;
       lifespan() handles startup and shutdown.
Who:   uvicorn (`uvicorn stackqa.main:app`), and the test suite via httpx.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Logging → GZip   │
    │               → CORS                                     │
    │                                                          │
    │  Routes:      /api/auth  /api/questions  /api/answers    │
    │               /api/users /api/notifications  /health     │
    │                                                          │
    │  Exception Handlers:                                     │
    │    Validation→400  Auth→401  Forbidden→403  NotFound→404 │
    │    Conflict→409    Database→500                          │
    │  RateLimit→429 is answered by the middleware itself      │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → wait for the database (bounded retry)
    Shutdown: dispose the engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from stackqa import __version__
from stackqa.config import settings
from stackqa.database import dispose_engine, wait_for_database
from stackqa.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    StackQAError,
    ValidationError,
)
from stackqa.middleware.logging import RequestLoggingMiddleware
from stackqa.middleware.rate_limit import RateLimitMiddleware
from stackqa.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware, request_id_var
from stackqa.routes import answers, auth, health, notifications, questions, users

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure stdout logging for the whole process.

    Every record passes RequestIDLogFilter on the handler, so the
    `%(request_id)s` field is always present ("-" outside requests) and log
    lines of one request can be grepped together.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    # passlib logs a traceback at import when bcrypt lacks __about__
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("StackQA Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    if await wait_for_database():
        logger.info("Database reachable")
    else:
        # Keep serving: /health reports the outage and requests fail with 500
        logger.error("Starting without a database connection")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("StackQA Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get("") or None,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the StackQAError hierarchy to HTTP responses.

        ValidationError         → 400  validation_error
        RequestValidationError  → 400  validation_error (schema violations)
        AuthenticationError     → 401  authentication_required
        ForbiddenError          → 403  forbidden
        NotFoundError           → 404  not_found
        ConflictError           → 409  conflict
        DatabaseError           → 500  server_error (generic message)
        StackQAError / other    → 500  internal_server_error

    Internal details (SQL, stack traces) are logged, never returned.
    Rate limiting answers 429 itself: it runs as middleware, in front of
    these handlers.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or None,
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        first = errors[0]["message"] if errors else "Invalid request"
        return _error_response(400, "validation_error", first, {"errors": errors})

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(
            401,
            "authentication_required",
            exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("Forbidden: %s | Context: %s", exc.message, exc.context)
        details = {"action": exc.action} if exc.action else None
        return _error_response(403, "forbidden", exc.message, details)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return _error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(StackQAError)
    async def handle_application_error(request: Request, exc: StackQAError):
        logger.error("Unhandled application error: %s | Context: %s", exc.message, exc.context)
        return _error_response(
            500, "internal_server_error", "An unexpected error occurred. Please try again."
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StackQA API",
        description=(
            "Question-and-answer service: ask questions, post answers, vote, "
            "accept answers, and follow question and answer lists live over "
            "Server-Sent Events."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Added in reverse execution order: the last one added runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(questions.router)
    app.include_router(answers.router)
    app.include_router(users.router)
    app.include_router(notifications.router)
    app.include_router(health.router)

    return app


app = create_app()
