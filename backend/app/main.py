"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware
from app.models import AsyncSessionLocal, init_db
from app.observability import (
    capture_error,
    init_error_tracking,
    shutdown_error_tracking,
)
from app.repositories import SqlAlchemyAttemptCounter, SqlAlchemySessionRepository
from app.services.reconciliation_scheduler import ReconciliationScheduler
from app.services.session_reconciler import StatusReconciler

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


def build_reconciliation_scheduler() -> ReconciliationScheduler:
    """Wire the reconciler and its scheduler to the configured database."""
    reconciler = StatusReconciler(
        SqlAlchemySessionRepository(AsyncSessionLocal),
        SqlAlchemyAttemptCounter(AsyncSessionLocal),
        attempt_timeout_seconds=settings.SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS,
        batch_limit=settings.SESSION_RECONCILE_BATCH_LIMIT,
    )
    return ReconciliationScheduler(
        reconciler,
        interval_seconds=settings.SESSION_RECONCILE_INTERVAL_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    Manages startup and shutdown events for the application.
    - On startup: Initializes error tracking, optionally creates tables and
      starts the session reconciliation scheduler
    - On shutdown: Stops the scheduler and flushes pending error reports
    """
    # Startup
    init_error_tracking()

    if settings.DB_AUTO_CREATE:
        await init_db()
        logger.info("Database tables created")

    scheduler = build_reconciliation_scheduler()
    app.state.reconciliation_scheduler = scheduler
    if settings.SESSION_RECONCILER_ENABLED:
        scheduler.start()
    else:
        logger.info("Session reconciliation scheduler disabled by configuration")

    yield

    # Shutdown
    await scheduler.stop()
    shutdown_error_tracking()
    logger.info("Application shut down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "sessions",
        "description": "Join-by-code lookup and access decisions for test sessions",
    },
    {
        "name": "Admin - Sessions",
        "description": "Manual session status reconciliation (requires X-Admin-Token)",
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Psikotes Session API** - scheduled psychological test sessions.\n\n"
            "This API provides:\n"
            "* Join-by-code lookup with an access decision for participants\n"
            "* Time-driven session status transitions "
            "(draft, active, expired, completed)\n"
            "* A manual reconciliation trigger for administrators\n"
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token", "X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Request validation failed: {errors}",
            extra={"method": request.method, "path": str(request.url.path)},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions and track them.

        Generates a unique error_id (UUID) for each exception to enable
        support teams to trace specific errors in logs. The error_id is
        included in the response body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
        )

        # Don't leak internal details
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
