"""Reclamation of stale working directories."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


def purge_stale_directory(path: Path, max_age_days: float, now: float | None = None) -> bool:
    """Delete ``path`` if it was last modified more than ``max_age_days`` ago.

    Errors are logged and swallowed; a directory that cannot be removed is
    simply reused.

    Returns:
        True if the directory was removed
    """
    try:
        if not path.exists():
            return False
        age_days = ((now or time.time()) - path.stat().st_mtime) / SECONDS_PER_DAY
        if age_days <= max_age_days:
            return False
        shutil.rmtree(path)
        logger.info(f"Cleaned up stale working directory {path} ({age_days:.1f} days old)")
        return True
    except OSError as e:
        logger.error(f"Error cleaning working directory {path}: {e}")
        return False
