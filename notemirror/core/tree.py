"""Remote tree discovery.

Walks the remote store breadth-first from the notes root and flattens it into
:class:`RemoteNode` descriptors whose ``path`` is the chain of ancestor folder
names. Folders of one level are listed concurrently, bounded by a semaphore.
"""

import asyncio
import logging

from notemirror.core.models import DiscoveryMode, NodeKind, RemoteItem, RemoteNode
from notemirror.sources.drive.base import RemoteStore

logger = logging.getLogger(__name__)


class RemoteTreeFetcher:
    """Enumerates every folder and note below a root folder."""

    def __init__(
        self,
        store: RemoteStore,
        mode: DiscoveryMode = DiscoveryMode.RECURSIVE,
        concurrency: int = 4,
    ):
        self.store = store
        self.mode = DiscoveryMode(mode)
        self.concurrency = max(1, concurrency)

    async def fetch(self, root_folder_id: str) -> list[RemoteNode]:
        """
        Discover the tree below ``root_folder_id``.

        In recursive mode every folder is visited and root-level notes are
        included. In flat mode only the category folders directly under the
        root are read, without their subfolders and without root-level notes.

        Returns:
            Flat list of folder and note nodes (order is not significant)

        Raises:
            RemoteStoreError: If any listing fails; no partial tree is returned
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        nodes: list[RemoteNode] = []

        if self.mode is DiscoveryMode.FLAT:
            async with semaphore:
                categories = await self.store.list_child_folders(root_folder_id)
            to_read: list[tuple[str, str]] = []
            for folder in categories:
                nodes.append(RemoteNode(kind=NodeKind.FOLDER, id=folder.id, name=folder.name))
                to_read.append((folder.id, folder.name))
            results = await asyncio.gather(
                *(self._list_notes(semaphore, folder_id) for folder_id, _ in to_read)
            )
            for (_, path), notes in zip(to_read, results):
                nodes.extend(self._note_nodes(notes, path))
        else:
            worklist: list[tuple[str, str]] = [(root_folder_id, "")]
            depth = 0
            while worklist:
                results = await asyncio.gather(
                    *(self._visit(semaphore, folder_id) for folder_id, _ in worklist)
                )
                next_level: list[tuple[str, str]] = []
                for (_, path), (folders, notes) in zip(worklist, results):
                    nodes.extend(self._note_nodes(notes, path))
                    for folder in folders:
                        nodes.append(
                            RemoteNode(kind=NodeKind.FOLDER, id=folder.id, name=folder.name, path=path)
                        )
                        child_path = f"{path}/{folder.name}" if path else folder.name
                        next_level.append((folder.id, child_path))
                logger.debug(f"Visited {len(worklist)} folder(s) at depth {depth}")
                worklist = next_level
                depth += 1

        folder_count = sum(1 for node in nodes if node.kind is NodeKind.FOLDER)
        logger.info(
            f"Discovered {len(nodes) - folder_count} note(s) in {folder_count} folder(s) "
            f"({self.mode.value} mode)"
        )
        return nodes

    async def _visit(
        self, semaphore: asyncio.Semaphore, folder_id: str
    ) -> tuple[list[RemoteItem], list[RemoteItem]]:
        async with semaphore:
            folders = await self.store.list_child_folders(folder_id)
        notes = await self._list_notes(semaphore, folder_id)
        return folders, notes

    async def _list_notes(self, semaphore: asyncio.Semaphore, folder_id: str) -> list[RemoteItem]:
        async with semaphore:
            return await self.store.list_child_notes(folder_id)

    @staticmethod
    def _note_nodes(items: list[RemoteItem], path: str) -> list[RemoteNode]:
        return [
            RemoteNode(
                kind=NodeKind.NOTE,
                id=item.id,
                name=item.name,
                path=path,
                created_at=item.created_at,
                modified_at=item.modified_at,
            )
            for item in items
        ]
