"""Shared fixtures: an in-memory note store, a git double and a local bare remote."""

import itertools
import logging
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import keyring
import keyring.errors
import pytest

from notemirror.core.backup import BackupOrchestrator
from notemirror.core.exceptions import GitCommandError, RemoteStoreError
from notemirror.core.models import CommitOutcome, DiscoveryMode, RemoteItem, SavedNote
from notemirror.sources.drive.base import RemoteStore
from notemirror.sources.git import GitRunner

ROOT_ID = "root"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class MemoryStore(RemoteStore):
    """RemoteStore keeping folders and notes in dictionaries."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.folders: dict[str, tuple[str, str]] = {}
        self.notes: dict[str, dict] = {}
        self.failing_listings: set[str] = set()
        self.failing_content: set[str] = set()
        self.content_hook = None
        self.closed = False

    def add_folder(self, name: str, parent: str = ROOT_ID) -> str:
        folder_id = f"folder-{next(self._ids)}"
        self.folders[folder_id] = (name, parent)
        return folder_id

    def add_note(
        self,
        name: str,
        text: str,
        parent: str = ROOT_ID,
        created: datetime | None = None,
        modified: datetime | None = None,
    ) -> str:
        note_id = f"note-{next(self._ids)}"
        self.notes[note_id] = {
            "name": name,
            "parent": parent,
            "text": text,
            "created": created,
            "modified": modified,
        }
        return note_id

    async def list_child_folders(self, parent_id: str) -> list[RemoteItem]:
        if parent_id in self.failing_listings:
            raise RemoteStoreError(f"listing {parent_id} failed", 500)
        return [
            RemoteItem(id=folder_id, name=name)
            for folder_id, (name, parent) in self.folders.items()
            if parent == parent_id
        ]

    async def list_child_notes(self, parent_id: str) -> list[RemoteItem]:
        if parent_id in self.failing_listings:
            raise RemoteStoreError(f"listing {parent_id} failed", 500)
        return [
            RemoteItem(id=note_id, name=note["name"], created_at=note["created"], modified_at=note["modified"])
            for note_id, note in self.notes.items()
            if note["parent"] == parent_id
        ]

    async def get_content(self, file_id: str) -> str:
        if self.content_hook is not None:
            await self.content_hook(file_id)
        if file_id in self.failing_content:
            raise RemoteStoreError(f"download {file_id} failed", 500)
        return self.notes[file_id]["text"]

    async def get_or_create_folder(self, parent_id: str, name: str) -> str:
        for folder_id, (folder_name, parent) in self.folders.items():
            if parent == parent_id and folder_name == name:
                return folder_id
        return self.add_folder(name, parent_id)

    async def create_or_update_note(self, parent_id: str, filename: str, text: str) -> SavedNote:
        for note_id, note in self.notes.items():
            if note["parent"] == parent_id and note["name"] == filename:
                note["text"] = text
                break
        else:
            note_id = self.add_note(filename, text, parent_id)
        return SavedNote(id=note_id, view_link=f"https://drive.example/{note_id}")

    async def close(self) -> None:
        self.closed = True


class SnapshotRepository:
    """Repository double that commits whenever the working tree content changed."""

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir)
        self.initialized = 0
        self.commits = 0
        self.pushes = 0
        self.before_push_hook = None
        self._snapshot: dict[str, bytes] = {}

    async def initialize(self) -> None:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.initialized += 1

    def _read_tree(self) -> dict[str, bytes]:
        return {
            str(path.relative_to(self.work_dir)): path.read_bytes()
            for path in sorted(self.work_dir.rglob("*"))
            if path.is_file()
        }

    async def commit_and_push(self, before_push=None) -> CommitOutcome:
        tree = self._read_tree()
        if tree == self._snapshot:
            return CommitOutcome(committed=False)
        self._snapshot = tree
        self.commits += 1
        if self.before_push_hook is not None:
            self.before_push_hook()
        if before_push is not None:
            before_push()
        self.pushes += 1
        return CommitOutcome(committed=True, message="Automated backup", branch="main", remote="origin")

    def files(self) -> dict[str, str]:
        return {path: data.decode("utf-8") for path, data in self._read_tree().items()}


class ScriptedGit(GitRunner):
    """GitRunner that records commands instead of running them.

    ``failures`` maps a git subcommand to how many times it should fail;
    ``outputs`` maps a subcommand to its stdout.
    """

    def __init__(self, cwd: Path, failures: dict[str, int] | None = None, outputs: dict[str, str] | None = None):
        super().__init__(cwd)
        self.calls: list[tuple[str, ...]] = []
        self.failures = dict(failures or {})
        self.outputs = dict(outputs or {})

    async def run(self, *args: str, cwd: Path | None = None) -> str:
        self.calls.append(args)
        command = args[0]
        if self.failures.get(command):
            self.failures[command] -= 1
            raise GitCommandError(list(args), 1, f"{command} failed")
        return self.outputs.get(command, "")

    def commands(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def two_note_store(store: MemoryStore) -> MemoryStore:
    """``A.md`` at the root and ``Work/Project/B.md`` two levels down."""
    store.add_note("A.md", "alpha", created=utc(2024, 1, 1), modified=utc(2024, 1, 1))
    work = store.add_folder("Work")
    project = store.add_folder("Project", parent=work)
    store.add_note("B.md", "beta", parent=project, created=utc(2024, 1, 15), modified=utc(2024, 2, 1))
    return store


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def repository(work_dir: Path) -> SnapshotRepository:
    return SnapshotRepository(work_dir)


@pytest.fixture
def make_orchestrator(work_dir: Path, repository: SnapshotRepository):
    def factory(store: RemoteStore, mode: DiscoveryMode = DiscoveryMode.RECURSIVE, repo=None) -> BackupOrchestrator:
        return BackupOrchestrator(
            store=store,
            repository=repo or repository,
            root_folder_id=ROOT_ID,
            work_dir=work_dir,
            discovery_mode=mode,
            concurrency=2,
        )

    return factory


def _git(*args: str, cwd: Path | None = None) -> str:
    completed = subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """A local bare repository on ``main`` with one seed commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    remote = tmp_path / "remote.git"
    _git("init", "--bare", str(remote))
    _git("symbolic-ref", "HEAD", "refs/heads/main", cwd=remote)

    seed = tmp_path / "seed"
    _git("clone", str(remote), str(seed))
    _git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
    (seed / "README.md").write_text("# Notes backup\n", encoding="utf-8")
    _git("add", ".", cwd=seed)
    _git("commit", "-m", "Initial commit", cwd=seed)
    _git("push", "origin", "main", cwd=seed)
    return remote


@pytest.fixture
def git():
    return _git


@pytest.fixture(autouse=True)
def memory_keyring(monkeypatch):
    """Keep tests away from the real system keyring."""
    secrets: dict[tuple[str, str], str] = {}

    def set_password(service, key, secret):
        secrets[(service, key)] = secret

    def get_password(service, key):
        return secrets.get((service, key))

    def delete_password(service, key):
        if (service, key) not in secrets:
            raise keyring.errors.PasswordDeleteError("not found")
        del secrets[(service, key)]

    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return secrets


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made by ``setup_logging``."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)
