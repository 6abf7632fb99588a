"""Timestamp conversions shared by the annotator, indexes and Drive client."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def parse_remote_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as returned by Drive (``...Z`` suffix)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. ``2024-01-01T00:00:00.000Z``."""
    utc = to_utc(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_date(value: datetime) -> str:
    """Calendar date (UTC) used in index listings."""
    return to_utc(value).strftime("%Y-%m-%d")


def format_backup_stamp(value: datetime, tz_name: str) -> str:
    """Human readable stamp for index footers, e.g. ``Jan 5, 2024, 3:00 AM EST``."""
    local = to_utc(value).astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {local.year}, {hour}:{local:%M %p} {local:%Z}"
