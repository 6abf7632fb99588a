"""Thin async wrapper around the ``git`` command line."""

import asyncio
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from notemirror.core.exceptions import GitCommandError
from notemirror.core.models import RepoStatus

logger = logging.getLogger(__name__)

REDACTED = "***"


class GitRunner:
    """
    Runs git commands in a working directory.

    Secrets passed to the constructor (tokens embedded in remote URLs) are
    replaced with ``***`` in every log line and error message.
    """

    def __init__(self, cwd: Path, secrets: Iterable[str] = ()):
        self.cwd = Path(cwd)
        self._secrets = [s for s in secrets if s]

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    async def run(self, *args: str, cwd: Path | None = None) -> str:
        """
        Execute ``git <args>`` and return its stdout.

        Raises:
            GitCommandError: If git exits with a non-zero status
        """
        workdir = cwd or self.cwd
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        shown = [self.redact(a) for a in args]
        logger.debug(f"git {' '.join(shown)} (cwd={workdir})", extra={"log_category": "git"})

        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=str(workdir),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitCommandError(shown, 127, "git executable not found") from e

        stdout, stderr = await process.communicate()
        out = stdout.decode("utf-8", errors="replace")
        err = self.redact(stderr.decode("utf-8", errors="replace").strip())

        if process.returncode != 0:
            raise GitCommandError(shown, process.returncode, err)
        if err:
            logger.debug(err, extra={"log_category": "git"})
        return out

    async def clone(self, url: str, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        await self.run("clone", url, str(target), cwd=target.parent)

    async def configure_identity(self, name: str, email: str) -> None:
        await self.run("config", "user.name", name)
        await self.run("config", "user.email", email)

    async def add_remote(self, name: str, url: str) -> bool:
        """Add a remote alias. Returns False if it already exists."""
        try:
            await self.run("remote", "add", name, url)
        except GitCommandError as e:
            if "already exists" in e.stderr:
                logger.debug(f"Remote {name} already exists")
                return False
            raise
        return True

    async def pull(self) -> None:
        await self.run("pull")

    async def hard_reset(self) -> None:
        await self.run("reset", "--hard")

    async def stage_all(self) -> None:
        await self.run("add", ".")

    async def status(self) -> RepoStatus:
        """Parse ``git status --porcelain -z`` into modified/new/created paths."""
        output = await self.run("status", "--porcelain=v1", "-z")
        modified: list[str] = []
        not_added: list[str] = []
        created: list[str] = []
        deleted: list[str] = []

        records = output.split("\0")
        index = 0
        while index < len(records):
            record = records[index]
            index += 1
            if len(record) < 4:
                continue
            code, path = record[:2], record[3:]
            if code[0] in "RC":
                # Renames and copies carry the original path as the next record.
                index += 1

            if code == "??":
                not_added.append(path)
            elif code[0] == "A":
                created.append(path)
            elif "D" in code:
                deleted.append(path)
            elif "M" in code or code[0] in "RC":
                modified.append(path)

        return RepoStatus(modified=modified, not_added=not_added, created=created, deleted=deleted)

    async def commit(self, message: str) -> None:
        await self.run("commit", "-m", message)

    async def current_branch(self) -> str | None:
        try:
            branch = (await self.run("branch", "--show-current")).strip()
        except GitCommandError as e:
            logger.debug(f"Could not detect current branch: {e}")
            return None
        return branch or None

    async def push(self, remote: str, branch: str) -> None:
        await self.run("push", remote, branch)
