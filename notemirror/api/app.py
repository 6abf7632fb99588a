"""FastAPI application for noteMirror.

This module provides the FastAPI application with:
- Request logging
- JSON error handlers
- The note saving endpoint and backup endpoints
- Background scheduler for the periodic backup
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from notemirror import __version__
from notemirror.api.exceptions import (
    NoteMirrorAPIError,
    api_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from notemirror.api.scheduler import BackupScheduler
from notemirror.core.config import AppConfig, load_config
from notemirror.utils.logging import setup_logging
from notemirror.utils.rate_limit import SlidingWindowLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: set up logging, start the scheduler
    - Shutdown: cancel an in-flight backup, stop the scheduler
    """
    config: AppConfig = app.state.config
    config.ensure_data_dir()
    setup_logging(config)
    logger.info("noteMirror API starting up...")
    logger.info(f"Configuration loaded from {config.general.config_file or 'defaults'}")

    missing = config.missing_required()
    if missing:
        logger.warning(f"Backups will fail until configured: {', '.join(missing)}")

    scheduler: BackupScheduler = app.state.scheduler
    await scheduler.start()

    yield

    logger.info("noteMirror API shutting down...")
    await scheduler.stop()


def create_app(config: AppConfig | None = None, scheduler: BackupScheduler | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration; loaded from the default location if omitted
        scheduler: Backup scheduler; built from config if omitted

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    config = config or load_config()

    app = FastAPI(
        title="noteMirror API",
        description="Save notes to Google Drive and back them up to GitHub",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.scheduler = scheduler or BackupScheduler(config)
    app.state.rate_limiter = SlidingWindowLimiter(
        max_requests=config.api.rate_limit_requests,
        window_seconds=config.api.rate_limit_window_seconds,
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests."""
        logger.debug(f"{request.method} {request.url.path}")
        response = await call_next(request)
        logger.debug(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    # Exception handlers
    app.add_exception_handler(NoteMirrorAPIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Register API routes
    from notemirror.api.routes import backup, health, notes

    app.include_router(health.router, tags=["Health"])
    app.include_router(notes.router, prefix="/api", tags=["Notes"])
    app.include_router(backup.router, prefix="/api/backup", tags=["Backup"])

    logger.debug("FastAPI application created")
    return app
