"""Dependency injection for FastAPI endpoints.

This module provides reusable dependencies for:
- Configuration access
- API key authentication
- Per-client rate limiting
- The remote note store
- The backup scheduler
"""

import hmac
import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, Request

from notemirror.api.exceptions import NoteMirrorAPIError
from notemirror.api.scheduler import BackupScheduler
from notemirror.core.config import AppConfig
from notemirror.sources.drive import DriveClient, RemoteStore
from notemirror.utils.rate_limit import SlidingWindowLimiter

logger = logging.getLogger(__name__)


def get_config(request: Request) -> AppConfig:
    """Get the application configuration the app was created with."""
    return request.app.state.config


def get_scheduler(request: Request) -> BackupScheduler:
    return request.app.state.scheduler


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting, honouring a reverse proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """Reject the request with 429 once the caller exceeds the window budget."""
    limiter: SlidingWindowLimiter = request.app.state.rate_limiter
    key = client_key(request)
    if not limiter.hit(key):
        logger.warning(f"Rate limit exceeded for {key}")
        raise NoteMirrorAPIError(
            "Too many requests, please try again later.",
            status_code=429,
            headers={"Retry-After": str(limiter.retry_after(key))},
        )


async def require_api_key(
    config: Annotated[AppConfig, Depends(get_config)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Check the ``x-api-key`` header against ``api.api_key``.

    Without a configured key every request is refused.
    """
    expected = config.api.api_key
    if not expected or not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise NoteMirrorAPIError("Unauthorized", status_code=403)


async def get_store(config: Annotated[AppConfig, Depends(get_config)]) -> AsyncIterator[RemoteStore]:
    """Get a Drive client for the duration of one request."""
    try:
        store = DriveClient.from_config(config.drive)
    except ValueError as e:
        logger.error(f"Cannot create Drive client: {e}")
        raise NoteMirrorAPIError("Internal Server Error", status_code=500) from e

    try:
        yield store
    finally:
        await store.close()


# Type aliases for dependency injection
ConfigDep = Annotated[AppConfig, Depends(get_config)]
SchedulerDep = Annotated[BackupScheduler, Depends(get_scheduler)]
StoreDep = Annotated[RemoteStore, Depends(get_store)]
