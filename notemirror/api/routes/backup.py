"""Backup trigger and history endpoints."""

import logging

from fastapi import APIRouter, Depends, Query

from notemirror.api.dependencies import SchedulerDep, require_api_key
from notemirror.api.models import BackupLogEntry, BackupRunResponse, BackupStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/run", response_model=BackupRunResponse)
async def run_backup(scheduler: SchedulerDep):
    """Run a backup now and wait for it to finish.

    Returns status ``skipped`` when another run is already in progress.
    """
    logger.info("Manual backup requested")
    result = await scheduler.run_backup(trigger="manual")
    return BackupRunResponse(**result.to_dict())


@router.get("/history", response_model=list[BackupLogEntry])
async def backup_history(scheduler: SchedulerDep, limit: int = Query(default=20, ge=1, le=500)):
    """Get recent backup runs, newest first."""
    await scheduler.logs_db.initialize()
    return await scheduler.logs_db.get_logs(limit=limit)


@router.get("/status", response_model=BackupStatusResponse)
async def backup_status(scheduler: SchedulerDep):
    """Get whether a backup is running and when the next one is due."""
    backup = scheduler.config.backup
    return BackupStatusResponse(
        running=scheduler.backup_in_progress,
        scheduler_running=scheduler.is_running,
        next_run=scheduler.next_run_time,
        cron=backup.cron if backup.enabled else None,
        timezone=backup.timezone,
    )
