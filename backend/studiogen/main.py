"""
StudioGen Backend - FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn studiogen.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware (outermost first):                               │
    │  CORS → GZip → Security Headers → Request ID → Logging       │
    │       → Rate Limit                                           │
    │                                                              │
    │  Routers:                                                    │
    │  /api/auth   /api/projects   /api/generate   /api/files      │
    │  /health                                                     │
    │                                                              │
    │  Exception Handlers:                                         │
    │  StudioGenError → its status │ request validation → 400      │
    │  unknown route → 404        │ anything else → 500            │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check (fatal in production) → storage dir
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from studiogen import __version__
from studiogen.config import settings
from studiogen.database import dispose_engine
from studiogen.exceptions import (
    AccountLockedError,
    AuthenticationError,
    CircuitBreakerOpenError,
    LLMServiceError,
    RateLimitExceededError,
    StudioGenError,
)
from studiogen.middleware.logging import RequestLoggingMiddleware
from studiogen.middleware.rate_limit import RateLimitMiddleware
from studiogen.middleware.request_id import RequestIDMiddleware, request_id_var
from studiogen.middleware.security_headers import SecurityHeadersMiddleware
from studiogen.routes import auth, files, generate, health, projects
from studiogen.responses import error_response, internal_error_response
from studiogen.schemas.common import FieldError

logger = logging.getLogger(__name__)

VALUE_ERROR_PREFIX = "Value error, "


# ══════════════════════════════════════════════════════════════════════════
# Structured Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

class RequestIDLogFilter(logging.Filter):
    """Stamps every record with the current request ID ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging() -> None:
    """
    Configure logging for the whole process. Called once from lifespan.

    Format: 2025-01-15T10:30:00 [INFO] studiogen.access [a1b2c3d4]: POST /api/auth/login 200 ...
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Per-request noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("StudioGen Backend %s starting up (%s)...", __version__, settings.environment)

    problems = settings.validate_required_for_production()
    if problems and settings.is_production:
        for problem in problems:
            logger.error("Configuration error: %s", problem)
        raise RuntimeError("Refusing to start in production with an unsafe configuration")
    for problem in problems:
        logger.warning("Configuration warning: %s", problem)

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("StudioGen Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    """[{field, message}] with the location prefix ("body", "query") dropped."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith(VALUE_ERROR_PREFIX):
            message = message[len(VALUE_ERROR_PREFIX):]
        details.append(
            FieldError(field=".".join(loc) or "body", message=message).model_dump()
        )
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the JSON error body.

    Handler hierarchy:
        StudioGenError subclasses → exc.status_code / exc.error_code
        RequestValidationError    → 400 validation_error with field list
        HTTPException 404         → "Route <METHOD> <path> not found"
        Exception                 → 500, stack trace logged only

    Exceptions escaping a route are answered by RequestLoggingMiddleware,
    inside the middleware stack; the Exception handler only sees failures
    in the outer middleware.

    Server-side errors (5xx) never echo their context; it goes to the log.
    """

    @app.exception_handler(StudioGenError)
    async def handle_studiogen_error(request: Request, exc: StudioGenError):
        status_code = exc.status_code
        extra: Dict[str, Any] = {}
        headers: Dict[str, str] = {}

        if status_code >= 500:
            logger.error(
                "%s on %s %s: %s | Context: %s",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc.message,
                exc.context,
            )
        elif exc.context:
            extra["details"] = exc.context

        if isinstance(exc, AuthenticationError) and exc.code:
            extra["code"] = exc.code
        if isinstance(exc, AccountLockedError):
            extra["locked_until"] = exc.locked_until.isoformat()
        if isinstance(exc, RateLimitExceededError):
            headers["Retry-After"] = str(exc.retry_after)
        if isinstance(exc, CircuitBreakerOpenError):
            headers["Retry-After"] = str(exc.recovery_time)
            extra["details"] = {"recovery_time": exc.recovery_time}
        if isinstance(exc, LLMServiceError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)

        return error_response(
            status_code,
            exc.error_code,
            exc.message,
            headers=headers or None,
            **extra,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = _field_errors(exc)
        logger.info("Request validation failed on %s: %s", request.url.path, details)
        return error_response(400, "validation_error", "Validation failed", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                404,
                "not_found",
                f"Route {request.method} {request.url.path} not found",
            )
        return error_response(
            exc.status_code,
            "http_error",
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "Unexpected error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        return internal_error_response()


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StudioGen AI API",
        description=(
            "Backend for StudioGen AI: accounts and sessions, project galleries and "
            "credit-metered AI product photography powered by Google Gemini."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: the chain below executes
    # CORS → GZip → SecurityHeaders → RequestID → Logging → RateLimit
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, connect_sources=settings.cors_origins_list)
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "X-Request-ID",
            "Retry-After",
        ],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(projects.router)
    app.include_router(generate.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()
