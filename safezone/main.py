"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from safezone import __version__
from safezone.api.auth import router as auth_router
from safezone.api.danger_zones import router as danger_zones_router
from safezone.api.middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from safezone.api.routes import router
from safezone.api.user import router as user_router
from safezone.config import get_settings
from safezone.database import close_database, init_database, run_migrations
from safezone.errors import AccountLockedError, ConflictError, SafezoneError
from safezone.services.container import ServiceContainer, build_services, postgres_stores
from safezone.services.logging_service import configure_logging, get_logger


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def _error_response(
    request: Request, status_code: int, error: str, detail: str, **extra
) -> JSONResponse:
    correlation_id = _correlation_id(request)
    headers = {CORRELATION_ID_HEADER: correlation_id}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": detail,
            "correlation_id": correlation_id,
            **extra,
        },
        headers=headers,
    )


async def safezone_exception_handler(request: Request, exc: SafezoneError) -> JSONResponse:
    """Map domain errors onto their HTTP status and a stable error code."""
    logger = structlog.get_logger()
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            error=exc.code,
            error_type=type(exc).__name__,
            internal_detail=exc.detail,
        )
    else:
        logger.info("request_rejected", error=exc.code, status_code=exc.status_code)

    extra = {}
    if isinstance(exc, ConflictError) and exc.field:
        extra["field"] = exc.field
    if isinstance(exc, AccountLockedError) and exc.locked_until:
        extra["locked_until"] = exc.locked_until.isoformat()
    return _error_response(request, exc.status_code, exc.code, exc.message, **extra)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, "http_error", str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with user-friendly messages.

    Returns 400 with the first field error.
    """
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    # Error entries echo the rejected input, which may be a password.
    logger.warning("validation_error", detail=detail, fields=[e.get("loc") for e in errors])
    return _error_response(request, 400, "validation_error", detail)


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the application.

    Args:
        services: Prebuilt service container. When omitted, startup connects
            to Postgres, applies migrations and wires the Postgres stores.
    """
    settings = services.settings if services is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        configure_logging(settings.log_level)
        pool = None
        if services is None:
            pool = await init_database(settings)
            await run_migrations(pool)
            app.state.db_pool = pool
            app.state.services = build_services(settings, postgres_stores(pool))

        logger = get_logger("main")
        logger.info("application_started", version=__version__)

        yield

        if pool is not None:
            await close_database(pool)
        logger.info("application_shutdown")

    app = FastAPI(
        title="SafeZone API",
        description="Authentication, session management and danger zone reports",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_exception_handler(SafezoneError, safezone_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    cors_origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(danger_zones_router)
    app.include_router(router)

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn (the `safezone-api` console script)."""
    settings = get_settings()
    uvicorn.run("safezone.main:app", host=settings.api_host, port=settings.api_port)
