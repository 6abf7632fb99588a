"""Working copy lifecycle for the backup repository.

State machine per run::

    UNINITIALIZED -> READY -> STAGED -> COMMITTED -> PUSHED

``READY`` is reached again on the next run through the same working copy.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from notemirror.core.config import GitHubConfig
from notemirror.core.exceptions import GitCommandError
from notemirror.core.models import CommitOutcome, RepositoryState
from notemirror.sources.git import GitRunner
from notemirror.utils.converters import format_iso

logger = logging.getLogger(__name__)

ORIGIN = "origin"


class RepositorySync:
    """
    Owns the local clone of the backup repository.

    Not safe for concurrent use: one backup run at a time may hold it.
    """

    def __init__(
        self,
        work_dir: Path,
        remote_url: str,
        auth_url: str | None = None,
        author_name: str = "Notes Backup Bot",
        author_email: str = "notes-backup@automated.local",
        auth_remote: str = "auth-origin",
        default_branch: str = "main",
        git: GitRunner | None = None,
    ):
        """
        Initialize repository sync.

        Args:
            work_dir: Path of the working copy (cloned if missing)
            remote_url: Plain URL of the backup repository
            auth_url: URL with an embedded token, added as ``auth_remote``
            author_name: Commit identity name
            author_email: Commit identity email
            auth_remote: Name of the authenticated remote alias
            default_branch: Branch pushed when the current one is unknown
            git: Git runner (injected by tests)
        """
        self.work_dir = Path(work_dir)
        self.remote_url = remote_url
        self.auth_url = auth_url
        self.author_name = author_name
        self.author_email = author_email
        self.auth_remote = auth_remote
        self.default_branch = default_branch
        self.git = git or GitRunner(self.work_dir, secrets=[auth_url or ""] + self._url_secrets(auth_url))
        self.state = RepositoryState.UNINITIALIZED

    @classmethod
    def from_config(cls, config: GitHubConfig, work_dir: Path) -> "RepositorySync":
        return cls(
            work_dir=work_dir,
            remote_url=config.repo_url,
            auth_url=config.authenticated_url,
            author_name=config.author_name,
            author_email=config.author_email,
            auth_remote=config.auth_remote,
            default_branch=config.default_branch,
        )

    @staticmethod
    def _url_secrets(url: str | None) -> list[str]:
        if not url or "@" not in url:
            return []
        credentials = url.split("://", 1)[-1].split("@", 1)[0]
        return [credentials]

    async def initialize(self) -> None:
        """
        Clone the repository, or pull if the working copy already exists.

        A failed pull is followed by one hard reset and one more pull.

        Raises:
            GitCommandError: If cloning fails or the retry pull fails
        """
        if not (self.work_dir / ".git").exists():
            logger.info("Cloning repository...")
            await self.git.clone(self.remote_url, self.work_dir)
            await self.git.configure_identity(self.author_name, self.author_email)
            if self.auth_url:
                await self.git.add_remote(self.auth_remote, self.auth_url)
        else:
            logger.info("Pulling latest changes...")
            try:
                await self.git.pull()
            except GitCommandError as e:
                logger.warning(f"Pull failed ({e}), attempting to reset and pull again...")
                await self.git.hard_reset()
                await self.git.pull()

        self.state = RepositoryState.READY

    async def commit_and_push(self, before_push: Callable[[], None] | None = None) -> CommitOutcome:
        """
        Stage everything, commit if anything changed, then push.

        Args:
            before_push: Optional callable invoked right before pushing; it may
                raise to abort (used for cancellation)

        Returns:
            CommitOutcome describing whether a commit was made and where it went

        Raises:
            GitCommandError: If committing fails or both push attempts fail
        """
        await self.git.stage_all()
        self.state = RepositoryState.STAGED
        status = await self.git.status()

        if not status.has_changes:
            logger.info("No new changes to back up.")
            return CommitOutcome(committed=False)

        message = f"Automated backup: {format_iso(datetime.now(timezone.utc))}"
        await self.git.commit(message)
        self.state = RepositoryState.COMMITTED
        logger.info(
            f"Committed {len(status.modified)} modified, {len(status.created) + len(status.not_added)} new path(s)"
        )

        if before_push is not None:
            before_push()

        branch = await self.git.current_branch() or self.default_branch
        remote = await self._push(branch)
        self.state = RepositoryState.PUSHED
        logger.info("Notes and indexes backed up to GitHub.")
        return CommitOutcome(committed=True, message=message, branch=branch, remote=remote)

    async def _push(self, branch: str) -> str:
        if self.auth_url:
            try:
                await self.git.push(self.auth_remote, branch)
                return self.auth_remote
            except GitCommandError as e:
                logger.warning(f"Push via {self.auth_remote} failed, falling back to {ORIGIN}: {e}")

        await self.git.push(ORIGIN, branch)
        return ORIGIN
