"""Pydantic models for API request/response validation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from notemirror.core.models import BackupStatus


class SaveNoteRequest(BaseModel):
    """Request body of ``POST /api/save-note``.

    Fields are optional here so that missing values are reported with the
    endpoint's own message rather than a schema error.
    """

    category: str | None = Field(default=None, description="Slash-separated category path")
    filename: str | None = Field(default=None, description="Note file name, ending in .md")
    content: str | None = Field(default=None, description="Markdown content of the note")


class SaveNoteResponse(BaseModel):
    """Response model for a saved note."""

    message: str
    link: str | None = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = "ok"
    timestamp: str


class BackupRunResponse(BaseModel):
    """Outcome of a backup run."""

    status: BackupStatus
    started_at: datetime
    finished_at: datetime | None = None
    duration_seconds: float = 0.0
    notes_written: int = 0
    notes_failed: int = 0
    malformed: int = 0
    categories: int = 0
    branch: str | None = None
    remote: str | None = None
    error: str | None = None
    failed_notes: list[str] = Field(default_factory=list)


class BackupLogEntry(BaseModel):
    """One row of the backup run history."""

    id: int
    trigger: str
    status: str
    started_at: float
    finished_at: float | None = None
    duration_seconds: float | None = None
    notes_written: int = 0
    notes_failed: int = 0
    error_message: str | None = None
    stats: dict[str, Any] | None = None


class BackupStatusResponse(BaseModel):
    """Scheduler and run state."""

    running: bool
    scheduler_running: bool
    next_run: datetime | None = None
    cron: str | None = None
    timezone: str
