"""
Grassroots Hub Backend — FastAPI Application Factory
======================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn grassroots.main:app).

Application Architecture:
    ┌────────────────────────────────────────────────────────┐
    │                      FastAPI App                       │
    │                                                        │
    │  Middleware Chain:                                     │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌──────────┐  │
    │  │ Rate Limit │→│  Req ID  │→│ Logging │→│GZip/CORS │  │
    │  └────────────┘ └──────────┘ └─────────┘ └──────────┘  │
    │                                                        │
    │  Routes:                                               │
    │  ┌──────────────┐ ┌───────────────┐ ┌───────────────┐  │
    │  │ /trial-lists │ │ /vacancies    │ │ GET /health   │  │
    │  │ /trial-evals │ │ /nearby       │ │               │  │
    │  └──────────────┘ └───────────────┘ └───────────────┘  │
    │                                                        │
    │  Exception Handlers:                                   │
    │  400 validation · 401 · 403 · 404 · 409 · 429 · 500    │
    └────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, schema creation (SQLite only;
              PostgreSQL is migrated with Alembic).
    Shutdown: dispose the database engine.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from grassroots import __version__
from grassroots.config import settings
from grassroots.database import create_all, dispose_engine
from grassroots.exceptions import (
    AuthenticationError,
    ConcurrencyConflictError,
    ConflictError,
    DatabaseError,
    GrassrootsError,
    InvalidRankError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
    ValidationError,
)
from grassroots.middleware.logging import RequestLoggingMiddleware
from grassroots.middleware.rate_limit import RateLimitMiddleware
from grassroots.middleware.request_id import RequestIDMiddleware, request_id_var
from grassroots.routes import health, trials, vacancies

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once at startup; stdout is collected by the container runtime."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Grassroots Hub Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so the problem is visible via logs and /health
        logger.warning("Configuration warning: %s", str(e))

    if settings.is_sqlite:
        await create_all()
        logger.info("SQLite schema ensured")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Grassroots Hub Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, exc: GrassrootsError, details=None, headers=None):
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": exc.message,
            "details": details,
            "request_id": request_id_var.get(""),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the GrassrootsError hierarchy onto HTTP responses.

    Handler hierarchy:
        InvalidRankError         → 400 invalid_rank
        ValidationError          → 400 validation_error
        AuthenticationError      → 401 unauthorized
        PermissionDeniedError    → 403 forbidden
        NotFoundError            → 404 not_found
        ConcurrencyConflictError → 409 concurrency_conflict
        ConflictError            → 409 conflict
        RateLimitExceededError   → 429 rate_limit_exceeded
        DatabaseError            → 500 server_error
        Exception (fallback)     → 500 internal_server_error

    Starlette picks the most specific handler along the exception's MRO, so
    subclasses get their own error codes.

    Responses never carry SQL, constraint names or stack traces; those are
    logged server-side with the request id.
    """

    @app.exception_handler(InvalidRankError)
    async def handle_invalid_rank(request: Request, exc: InvalidRankError):
        logger.info("[%s] Invalid rank: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "invalid_rank", exc, details=exc.context)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc, details=exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(
            401, "unauthorized", exc, headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.warning("[%s] Permission denied: %s", request_id_var.get(""), exc.context)
        return _error_response(403, "forbidden", exc)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc)

    @app.exception_handler(ConcurrencyConflictError)
    async def handle_concurrency_conflict(request: Request, exc: ConcurrencyConflictError):
        logger.warning(
            "[%s] Giving up on trial list %s after %d attempts",
            request_id_var.get(""), exc.list_id, settings.retry_max_attempts,
        )
        return _error_response(409, "concurrency_conflict", exc, details=exc.context)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc, details=exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429, "rate_limit_exceeded", exc,
            details=exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "details": None,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "details": None,
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Grassroots Hub API",
        description=(
            "Grassroots football hub: coaches run trials and keep a ranked, "
            "evaluated shortlist of players; teams advertise vacancies that "
            "players can search by distance."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(trials.router)
    app.include_router(vacancies.router)
    app.include_router(health.router)

    return app


app = create_app()
