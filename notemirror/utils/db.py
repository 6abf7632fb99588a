"""Database utilities for recording backup run history."""

import json
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from notemirror.core.models import BackupResult

logger = logging.getLogger(__name__)


class BackupLogsDB:
    """
    Manages SQLite database of backup runs.

    One row per run: how it was triggered, its final status, counters and the
    error message when it failed.
    """

    def __init__(self, db_path: Path):
        """
        Initialize database wrapper.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create the backup_logs table if it doesn't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS backup_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    trigger TEXT NOT NULL,
                    status TEXT NOT NULL,
                    started_at REAL NOT NULL,
                    finished_at REAL,
                    duration_seconds REAL,
                    notes_written INTEGER DEFAULT 0,
                    notes_failed INTEGER DEFAULT 0,
                    stats_json TEXT,
                    error_message TEXT
                )
                """
            )

            await db.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_backup_logs_started
                ON backup_logs(started_at)
                """
            )

            await db.commit()
            logger.debug(f"Backup logs database initialized at {self.db_path}")

    async def create_log(self, trigger: str, status: str = "running") -> int:
        """
        Insert a new run record.

        Args:
            trigger: What started the run ("scheduled", "manual", "cli")
            status: Initial status

        Returns:
            ID of the new row
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO backup_logs (trigger, status, started_at)
                VALUES (?, ?, ?)
                """,
                (trigger, status, datetime.now().timestamp()),
            )
            await db.commit()
            return cursor.lastrowid

    async def complete_log(self, log_id: int, result: BackupResult) -> None:
        """Store the final outcome of a run."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE backup_logs
                SET status = ?, finished_at = ?, duration_seconds = ?,
                    notes_written = ?, notes_failed = ?, stats_json = ?, error_message = ?
                WHERE id = ?
                """,
                (
                    result.status.value,
                    (result.finished_at or datetime.now()).timestamp(),
                    result.duration_seconds,
                    result.notes_written,
                    result.notes_failed,
                    json.dumps(result.to_dict()),
                    result.error,
                    log_id,
                ),
            )
            await db.commit()

    async def get_logs(self, limit: int = 20, status: str | None = None) -> list[dict]:
        """
        Get recent run records, newest first.

        Args:
            limit: Maximum number of records
            status: Only return runs with this status
        """
        query = "SELECT * FROM backup_logs"
        params: list = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY started_at DESC, id DESC LIMIT ?"
        params.append(limit)

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()

        logs = []
        for row in rows:
            log = dict(row)
            stats = log.pop("stats_json", None)
            log["stats"] = json.loads(stats) if stats else None
            logs.append(log)
        return logs

    async def clear_logs(self) -> int:
        """Delete all run records. Returns the number removed."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM backup_logs")
            await db.commit()
            return cursor.rowcount
