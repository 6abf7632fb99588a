"""Scheduler for the periodic backup job.

The backup runs on a cron expression evaluated in the configured time zone
(03:00 America/New_York by default). Manual runs from the API go through the
same :class:`BackupScheduler` so every run lands in the history database.
"""

import asyncio
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from notemirror.core.backup import BackupOrchestrator
from notemirror.core.config import AppConfig
from notemirror.core.models import BackupResult, BackupStatus
from notemirror.utils.db import BackupLogsDB

logger = logging.getLogger(__name__)

JOB_ID = "notes_backup"


class BackupScheduler:
    """Runs the backup on a cron schedule and records every run.

    Features:
    - One APScheduler job, ``max_instances=1`` with coalescing
    - Orchestrator built lazily so the API can start before credentials exist
    - Run history written to :class:`BackupLogsDB`
    """

    def __init__(
        self,
        config: AppConfig,
        orchestrator: BackupOrchestrator | None = None,
        logs_db: BackupLogsDB | None = None,
        shutdown_timeout: float = 30.0,
    ):
        """Initialize the scheduler.

        Args:
            config: Application configuration
            orchestrator: Pre-built orchestrator (tests); built from config otherwise
            logs_db: Run history database
            shutdown_timeout: Seconds ``stop`` waits for an in-flight run
        """
        self.config = config
        self.scheduler = AsyncIOScheduler(timezone=config.backup.timezone)
        self.logs_db = logs_db or BackupLogsDB(config.backup_logs_db_path)
        self._orchestrator = orchestrator
        self.shutdown_timeout = shutdown_timeout
        self._db_ready = False
        self._running = False

    @property
    def is_running(self) -> bool:
        """Return True if the scheduler is actively running."""
        return self._running

    @property
    def backup_in_progress(self) -> bool:
        return self._orchestrator is not None and self._orchestrator.is_running

    @property
    def next_run_time(self) -> datetime | None:
        job = self.scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def _get_orchestrator(self) -> BackupOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = BackupOrchestrator.from_config(self.config)
        return self._orchestrator

    async def _ensure_db(self) -> None:
        if not self._db_ready:
            await self.logs_db.initialize()
            self._db_ready = True

    async def start(self) -> None:
        """Start the scheduler and register the backup job."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        await self._ensure_db()

        if self.config.backup.enabled:
            trigger = CronTrigger.from_crontab(
                self.config.backup.cron, timezone=self.config.backup.timezone
            )
            self.scheduler.add_job(
                self.run_backup,
                trigger=trigger,
                args=["scheduled"],
                id=JOB_ID,
                name="Notes backup",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info(
                f"Backup scheduled with cron '{self.config.backup.cron}' "
                f"({self.config.backup.timezone})"
            )
        else:
            logger.info("Scheduled backups disabled")

        self.scheduler.start()
        self._running = True

        next_run = self.next_run_time
        if next_run:
            logger.info(f"Next backup at {next_run.isoformat()}")

    async def stop(self) -> None:
        """Cancel an in-flight backup, wait for it to settle and stop the scheduler."""
        if self._orchestrator is not None:
            if self._orchestrator.is_running:
                self._orchestrator.request_cancel()
                try:
                    await asyncio.wait_for(
                        self._orchestrator.wait_until_idle(), timeout=self.shutdown_timeout
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Backup still running after {self.shutdown_timeout}s, closing store anyway"
                    )
            await self._orchestrator.close()

        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    async def run_backup(self, trigger: str = "manual") -> BackupResult:
        """Run one backup and record it in the history database.

        Args:
            trigger: What started the run ("scheduled", "manual", "cli")

        Returns:
            BackupResult of the run
        """
        await self._ensure_db()

        missing = [] if self._orchestrator is not None else self.config.missing_required()
        if missing:
            now = datetime.now(timezone.utc)
            result = BackupResult(
                status=BackupStatus.FAILED,
                started_at=now,
                finished_at=now,
                error=f"Missing required configuration: {', '.join(missing)}",
            )
            logger.error("Backup not started: %s", result.error)
            log_id = await self.logs_db.create_log(trigger=trigger)
            await self.logs_db.complete_log(log_id, result)
            return result

        orchestrator = self._get_orchestrator()
        if orchestrator.is_running:
            logger.warning("Backup already in progress, %s trigger skipped", trigger)

        log_id = await self.logs_db.create_log(trigger=trigger)
        result = await orchestrator.run()
        await self.logs_db.complete_log(log_id, result)

        logger.info(
            "%s backup finished with status %s (duration: %.2fs)",
            trigger.capitalize(),
            result.status.value,
            result.duration_seconds,
        )
        return result
