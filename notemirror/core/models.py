"""Run-scoped data types shared by the backup engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class NodeKind(str, Enum):
    """Kind of item found in the remote store."""

    FOLDER = "folder"
    NOTE = "note"


class DiscoveryMode(str, Enum):
    """How much of the remote tree is walked."""

    FLAT = "flat"
    RECURSIVE = "recursive"


class BackupStatus(str, Enum):
    """Outcome of a single backup run."""

    SUCCESS = "success"
    NO_CHANGES = "no_changes"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RepositoryState(str, Enum):
    """Lifecycle of the local working copy within one run."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STAGED = "staged"
    COMMITTED = "committed"
    PUSHED = "pushed"


@dataclass(frozen=True)
class RemoteItem:
    """A single listing row returned by the remote store."""

    id: str
    name: str
    created_at: datetime | None = None
    modified_at: datetime | None = None


@dataclass(frozen=True)
class RemoteNode:
    """A folder or note discovered in the remote tree.

    ``path`` is the slash-joined chain of ancestor folder names below the
    root folder, empty for root-level items.
    """

    kind: NodeKind
    id: str
    name: str
    path: str = ""
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @property
    def relative_path(self) -> str:
        """Path of the node itself relative to the mirror root."""
        return f"{self.path}/{self.name}" if self.path else self.name


@dataclass(frozen=True)
class SavedNote:
    """Result of creating or updating a note in the remote store."""

    id: str
    view_link: str | None = None


@dataclass(frozen=True)
class IndexEntry:
    """One note line in a category index."""

    name: str
    date: str


@dataclass(frozen=True)
class CategorySummary:
    """One category line in the root index."""

    name: str
    path: str
    last_updated: str


@dataclass(frozen=True)
class RepoStatus:
    """Paths reported by ``git status`` after staging."""

    modified: list[str] = field(default_factory=list)
    not_added: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.modified or self.not_added or self.created)


@dataclass(frozen=True)
class CommitOutcome:
    """What ``commit_and_push`` did."""

    committed: bool
    message: str | None = None
    branch: str | None = None
    remote: str | None = None


@dataclass
class BackupResult:
    """Summary of one backup run, returned instead of raising."""

    status: BackupStatus
    started_at: datetime
    finished_at: datetime | None = None
    notes_written: int = 0
    notes_failed: int = 0
    malformed: int = 0
    categories: int = 0
    branch: str | None = None
    remote: str | None = None
    error: str | None = None
    failed_notes: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "notes_written": self.notes_written,
            "notes_failed": self.notes_failed,
            "malformed": self.malformed,
            "categories": self.categories,
            "branch": self.branch,
            "remote": self.remote,
            "error": self.error,
            "failed_notes": self.failed_notes,
        }
