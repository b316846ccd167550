"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    SNOWFLAKE_MOCK_MODE=true JWT_SECRET=dev uvicorn trainlog.main:app --reload

For production:
    gunicorn trainlog.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, progress
from .config.settings import Settings, get_settings
from .core.progress.errors import (
    AuthError,
    EntryNotFoundError,
    StoreUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Connections are opened per request, so
    startup only checks configuration. A missing token secret aborts
    startup: no request could authenticate without it.
    """
    settings = app.state.settings

    logger.info(
        "TrainLog API starting",
        extra={
            "version": __version__,
            "mock_mode": {"snowflake": settings.snowflake_mock_mode},
            "reference_timezone": settings.reference_timezone,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET must be set")

    yield

    logger.info("TrainLog API shutting down")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map domain errors to HTTP responses.

    Not-found and auth failures always carry the same message, whatever
    the underlying reason, so responses never reveal other owners' data.
    """

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(
            "Rejected invalid input",
            extra={"path": request.url.path, "field": exc.field, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": first.get("msg", "Invalid request"),
                "field": location[-1] if location else None,
            },
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(EntryNotFoundError)
    async def not_found_handler(request: Request, exc: EntryNotFoundError):
        logger.warning("Progress entry not found", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Progress entry not found"},
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        # Detail was logged where it happened; clients only get the generic message.
        logger.error(
            "Entry store unavailable",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Progress store unavailable"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Tests pass their own
    settings; otherwise they come from the environment.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Training log and progress analytics.

        ## Features

        - Log runs, walks, cross-training and rest days
        - Pace derived automatically from distance and duration
        - Weekly summaries, trailing-period statistics and weekly trends
        - Consecutive-day training streak

        ## Authentication

        All progress endpoints require an `Authorization: Bearer <token>`
        header carrying a signed JWT with a `uid` (or `sub`) claim.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        progress.router,
        prefix=f"/api/{settings.api_version}/progress",
        tags=["Progress"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": settings.api_title,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    register_exception_handlers(app)

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "trainlog.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
