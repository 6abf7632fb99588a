"""Backup orchestration: remote store → local mirror → git.

One run:

1. Purge the working copy if it has gone stale
2. Clone or pull the backup repository
3. Fetch the remote tree
4. Per folder: create it, annotate and write each note, write its index
5. Write the root index
6. Commit and push if anything changed

Runs are single-flight: a trigger that arrives while a run holds the working
copy is skipped. :meth:`BackupOrchestrator.run` never raises; failures are
logged and reported through :class:`BackupResult`.
"""

import asyncio
import logging
import warnings
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from notemirror.core.annotate import annotate
from notemirror.core.config import AppConfig
from notemirror.core.exceptions import BackupCancelledError, MalformedFrontMatterWarning
from notemirror.core.indexes import IndexGenerator
from notemirror.core.models import (
    BackupResult,
    BackupStatus,
    CategorySummary,
    DiscoveryMode,
    IndexEntry,
    NodeKind,
    RemoteNode,
)
from notemirror.core.repository import RepositorySync
from notemirror.core.tree import RemoteTreeFetcher
from notemirror.sources.drive.base import RemoteStore
from notemirror.sources.notes.mirror import MirrorWriter
from notemirror.utils.cleanup import purge_stale_directory
from notemirror.utils.converters import format_backup_stamp, format_date

logger = logging.getLogger(__name__)

ROOT_BUCKET_NAME = "Root Notes"


def top_level_categories(last_updated: dict[str, str]) -> list[CategorySummary]:
    """
    Pick the categories listed in the root index.

    A category is top-level when none of its ancestor paths holds notes of its
    own; notes at the empty path form the synthetic root bucket.

    Args:
        last_updated: Category path → most recent note date
    """
    summaries: list[CategorySummary] = []
    for path, date in last_updated.items():
        if not path:
            summaries.append(CategorySummary(name=ROOT_BUCKET_NAME, path="", last_updated=date))
            continue
        segments = path.split("/")
        ancestors = ("/".join(segments[:i]) for i in range(1, len(segments)))
        if any(ancestor in last_updated for ancestor in ancestors):
            continue
        summaries.append(CategorySummary(name=path, path=path, last_updated=date))
    return summaries


class BackupOrchestrator:
    """
    Sequences tree discovery, mirroring, indexing and the git commit/push.

    Components are injected so tests can substitute the remote store and the
    repository.
    """

    def __init__(
        self,
        store: RemoteStore,
        repository: RepositorySync,
        root_folder_id: str,
        work_dir: Path,
        discovery_mode: DiscoveryMode = DiscoveryMode.RECURSIVE,
        concurrency: int = 4,
        stale_after_days: float = 7,
        timezone_name: str = "America/New_York",
    ):
        self.store = store
        self.repository = repository
        self.root_folder_id = root_folder_id
        self.work_dir = Path(work_dir)
        self.fetcher = RemoteTreeFetcher(store, mode=discovery_mode, concurrency=concurrency)
        self.mirror = MirrorWriter(self.work_dir)
        self.indexes = IndexGenerator(self.work_dir)
        self.concurrency = max(1, concurrency)
        self.stale_after_days = stale_after_days
        self.timezone_name = timezone_name
        self._lock = asyncio.Lock()
        self._cancel = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_config(cls, config: AppConfig, store: RemoteStore | None = None) -> "BackupOrchestrator":
        """Build an orchestrator with a Drive client and GitHub repository from config."""
        from notemirror.sources.drive.client import DriveClient

        if not config.drive.notes_folder_id:
            raise ValueError("drive.notes_folder_id is not configured")

        return cls(
            store=store or DriveClient.from_config(config.drive),
            repository=RepositorySync.from_config(config.github, config.backup.work_dir),
            root_folder_id=config.drive.notes_folder_id,
            work_dir=config.backup.work_dir,
            discovery_mode=DiscoveryMode(config.drive.discovery_mode),
            concurrency=config.drive.concurrency,
            stale_after_days=config.backup.stale_after_days,
            timezone_name=config.backup.timezone,
        )

    @property
    def is_running(self) -> bool:
        """Return True while a run holds the working copy."""
        return self._lock.locked()

    def request_cancel(self) -> None:
        """Ask the in-flight run to stop at its next checkpoint (never mid-push)."""
        if self.is_running:
            logger.info("Cancellation requested for running backup")
        self._cancel.set()

    async def wait_until_idle(self) -> None:
        """Wait for the in-flight run, if any, to finish."""
        await self._idle.wait()

    def _checkpoint(self) -> None:
        if self._cancel.is_set():
            raise BackupCancelledError("Backup cancelled before completion")

    async def run(self) -> BackupResult:
        """
        Execute one backup run.

        Returns:
            BackupResult; never raises for run failures
        """
        started = datetime.now(timezone.utc)
        if self._lock.locked():
            logger.warning("Backup already in progress, skipping this trigger")
            return BackupResult(status=BackupStatus.SKIPPED, started_at=started, finished_at=started)

        async with self._lock:
            self._cancel.clear()
            self._idle.clear()
            result = BackupResult(status=BackupStatus.FAILED, started_at=started)
            logger.info("Starting Google Drive → GitHub backup...")
            try:
                await self._run(result)
            except BackupCancelledError as e:
                result.status = BackupStatus.CANCELLED
                result.error = str(e)
                logger.warning("Backup cancelled; nothing was pushed")
            except Exception as e:  # pylint: disable=broad-except
                result.status = BackupStatus.FAILED
                result.error = str(e)
                logger.error(f"Error during GitHub backup: {e}", exc_info=True)
            finally:
                self._idle.set()
            result.finished_at = datetime.now(timezone.utc)

        logger.info(
            f"Backup finished: {result.status.value} "
            f"(written: {result.notes_written}, failed: {result.notes_failed}, "
            f"malformed: {result.malformed}, duration: {result.duration_seconds:.2f}s)"
        )
        return result

    async def _run(self, result: BackupResult) -> None:
        purge_stale_directory(self.work_dir, self.stale_after_days)
        self._checkpoint()

        await self.repository.initialize()
        self._checkpoint()

        backup_stamp = format_backup_stamp(result.started_at, self.timezone_name)

        logger.info("Fetching Drive tree...")
        nodes = await self.fetcher.fetch(self.root_folder_id)
        self._checkpoint()

        notes_by_folder: dict[str, list[RemoteNode]] = defaultdict(list)
        for note in self._unique_notes(nodes):
            notes_by_folder[note.path].append(note)
        for node in nodes:
            if node.kind is NodeKind.FOLDER:
                await self._ensure_folder(node.relative_path)

        semaphore = asyncio.Semaphore(self.concurrency)
        last_updated: dict[str, str] = {}

        for folder_path in sorted(notes_by_folder):
            self._checkpoint()
            notes = notes_by_folder[folder_path]
            logger.info(f"Processing folder: {folder_path or '(root)'}")

            disk_path = await self._ensure_folder(folder_path)
            if disk_path is None:
                for note in notes:
                    self._record_failure(result, note, "folder could not be created")
                continue

            outcomes = await self._mirror_folder(semaphore, notes, result)
            entries = [entry for entry in outcomes if entry is not None]
            if not entries:
                logger.warning(f"No notes written for {folder_path or '(root)'}, index not regenerated")
                continue

            last_updated[folder_path] = max(entry.date for entry in entries)
            if folder_path:
                # The root bucket is listed by the root index itself.
                category_name = folder_path.rsplit("/", 1)[-1]
                await self.indexes.write_category_index(disk_path, category_name, entries, backup_stamp)

        result.categories = len(last_updated)
        await self.indexes.write_root_index(top_level_categories(last_updated), backup_stamp)
        self._checkpoint()

        outcome = await self.repository.commit_and_push(before_push=self._checkpoint)
        result.branch = outcome.branch
        result.remote = outcome.remote
        result.status = BackupStatus.SUCCESS if outcome.committed else BackupStatus.NO_CHANGES

    @staticmethod
    def _unique_notes(nodes: list[RemoteNode]) -> list[RemoteNode]:
        """
        Collapse notes that map to the same mirror path.

        Drive allows duplicate names among siblings (and duplicate sibling
        folders), so two notes can land on one file. The most recently
        modified one wins; on a tie the first discovered is kept.
        """
        oldest = datetime.min.replace(tzinfo=timezone.utc)

        def freshness(note: RemoteNode) -> datetime:
            return note.modified_at or note.created_at or oldest

        chosen: dict[str, RemoteNode] = {}
        for node in nodes:
            if node.kind is not NodeKind.NOTE:
                continue
            current = chosen.get(node.relative_path)
            if current is None:
                chosen[node.relative_path] = node
                continue
            logger.warning(
                f"Duplicate note path {node.relative_path} (ids {current.id}, {node.id}); "
                "keeping the most recently modified"
            )
            if freshness(node) > freshness(current):
                chosen[node.relative_path] = node
        return list(chosen.values())

    async def _mirror_folder(
        self, semaphore: asyncio.Semaphore, notes: list[RemoteNode], result: BackupResult
    ) -> list[IndexEntry | None]:
        tasks = [asyncio.create_task(self._mirror_note(semaphore, note, result)) for note in notes]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            # Writers still holding the semaphore must not outlive the run.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _ensure_folder(self, folder_path: str) -> Path | None:
        try:
            return await self.mirror.ensure_folder(folder_path)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Could not create folder {folder_path!r}: {e}")
            return None

    async def _mirror_note(
        self, semaphore: asyncio.Semaphore, note: RemoteNode, result: BackupResult
    ) -> IndexEntry | None:
        async with semaphore:
            self._checkpoint()
            try:
                content = await self.store.get_content(note.id)

                updated = note.modified_at or note.created_at or result.started_at
                created = note.created_at or updated

                with warnings.catch_warnings(record=True) as caught:
                    warnings.simplefilter("always", MalformedFrontMatterWarning)
                    annotated = annotate(content, created, updated)
                if any(issubclass(w.category, MalformedFrontMatterWarning) for w in caught):
                    result.malformed += 1
                    logger.warning(
                        f"Unclosed front matter in {note.relative_path}; written without timestamp update"
                    )

                await self.mirror.write_note(note.path, note.name, annotated)
            except Exception as e:  # pylint: disable=broad-except
                self._record_failure(result, note, str(e))
                return None

            result.notes_written += 1
            return IndexEntry(name=note.name, date=format_date(updated))

    @staticmethod
    def _record_failure(result: BackupResult, note: RemoteNode, reason: str) -> None:
        result.notes_failed += 1
        result.failed_notes.append(note.relative_path)
        logger.warning(f"Error processing note {note.relative_path} (id {note.id}): {reason}")

    async def close(self) -> None:
        await self.store.close()
