"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from notemirror.api.models import HealthResponse
from notemirror.utils.converters import format_iso

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint.

    Returns basic health status of the API server.
    """
    return HealthResponse(
        status="ok",
        timestamp=format_iso(datetime.now(timezone.utc)),
    )
