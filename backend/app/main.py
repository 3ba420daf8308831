"""
RentGate Backend - FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings, the access policy (with its rate limiter
       and CSRF guard), middleware, exception handlers and routes.
Who:   Called by uvicorn (uvicorn app.main:app) and by the test suite, which
       passes its own rate limiter and settings per test.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  CORS → Request ID → Logging → Access Control → GZip     │
    │                                                          │
    │  Routes:                                                 │
    │  GET /api/csrf-token   POST /api/impersonate             │
    │  GET /health           POST /api/revert-impersonation    │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400  Auth→401  Forbidden→403  NotFound→404   │
    │  Database→500    anything else→500                       │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   configure logging, validate settings, log the policy summary
    Shutdown:  clear the rate limit table, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app import __version__
from app.config import Settings, settings as default_settings
from app.database import dispose_engine
from app.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    NotFoundError,
    RentGateError,
    ValidationError,
)
from app.middleware.access_control import AccessControlMiddleware, error_response
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import csrf, health, impersonation
from app.services.access_policy import MSG_INTERNAL_ERROR, AccessPolicy
from app.services.rate_limiter import FixedWindowRateLimiter
from app.services.route_policy import RouteTable

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str) -> None:
    """
    Configure logging for the entire application.

    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions raised by route handlers to envelopes.

    Handler hierarchy:
        ValidationError / RequestValidationError  → 400
        AuthenticationError                       → 401
        AuthorizationError                        → 403
        NotFoundError                             → 404
        DatabaseError                             → 500 (generic message)
        RentGateError (base)                      → 500
        Exception (fallback)                      → 500 (generic message)

    Responses never include stack traces, SQL or context dicts; those are
    logged server-side only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.warning("[%s] Invalid request body: %s", request_id_var.get(""), errors)
        field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
        message = f"Invalid value for '{field}'" if field else "Invalid request body"
        return error_response(400, message)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return error_response(401, exc.message)

    @app.exception_handler(AuthorizationError)
    async def handle_authorization_error(request: Request, exc: AuthorizationError):
        logger.warning(
            "[%s] Authorization error on %s: %s",
            request_id_var.get(""),
            request.url.path,
            exc.context,
        )
        return error_response(403, exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return error_response(500, exc.message)

    @app.exception_handler(RentGateError)
    async def handle_app_error(request: Request, exc: RentGateError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return error_response(500, MSG_INTERNAL_ERROR)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return error_response(500, MSG_INTERNAL_ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    *,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
    route_table: Optional[RouteTable] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every piece of mutable per-process state (the rate limit table) is
    created here and owned by the returned app, so tests get isolated
    instances simply by calling create_app() again.
    """
    app_settings = app_settings or default_settings
    policy = AccessPolicy.from_settings(
        app_settings, rate_limiter=rate_limiter, route_table=route_table
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(app_settings.log_level)
        logger.info("RentGate Backend %s starting up (%s)", __version__, app_settings.environment)

        try:
            app_settings.validate_required_for_production()
        except ValueError as e:
            logger.error("Configuration error: %s", str(e))

        logger.info(
            "Access policy: %d routes, rate limit %d requests / %ds per client IP",
            len(policy.route_table),
            policy.rate_limiter.limit,
            policy.rate_limiter.window_seconds,
        )

        yield

        logger.info("RentGate Backend shutting down...")
        policy.rate_limiter.reset()
        await dispose_engine()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="RentGate API",
        description=(
            "Request authorization front for the rental management application: "
            "route-based role checks, tenant scoping, CSRF and rate limiting."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.access_policy = policy
    app.state.csrf_guard = policy.csrf_guard
    app.state.rate_limiter = policy.rate_limiter

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute. Execution order:
    # CORS → RequestID → Logging → AccessControl → GZip → route

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(AccessControlMiddleware, policy=policy)

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,  # session and CSRF cookies
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Remaining",
            "X-RateLimit-Limit",
        ],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(csrf.router)
    app.include_router(impersonation.router)
    app.include_router(health.router)

    return app


# uvicorn expects `app.main:app` to be importable
app = create_app()
