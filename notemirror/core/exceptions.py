"""Exception types raised by the backup engine."""


class NoteMirrorError(Exception):
    """Base class for noteMirror errors."""


class RemoteStoreError(NoteMirrorError):
    """A request to the remote note store failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitCommandError(NoteMirrorError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"git {' '.join(command)} failed with exit code {returncode}{detail}")


class MirrorPathError(NoteMirrorError):
    """A remote name or path would escape the local working copy."""


class BackupCancelledError(NoteMirrorError):
    """The backup run was cancelled before it finished."""


class MalformedFrontMatterWarning(UserWarning):
    """A note opens a front-matter block but never closes it."""
