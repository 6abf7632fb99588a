"""Local mirror of the remote note tree.

The mirror lives inside the git working copy. Folder paths from the remote
store map one-to-one onto directories; notes are overwritten on every run so
git alone decides whether anything changed.
"""

import logging
from pathlib import Path

import aiofiles

from notemirror.core.exceptions import MirrorPathError

logger = logging.getLogger(__name__)


class MirrorWriter:
    """
    Writes folders and notes under a base directory.

    This class focuses on FILE OPERATIONS only; it knows nothing about the
    remote store or git.
    """

    def __init__(self, base_path: Path):
        """
        Initialize the mirror writer.

        Args:
            base_path: Root of the mirror (the git working copy)
        """
        self.base_path = Path(base_path).expanduser().resolve()

    def resolve(self, folder_path: str, name: str | None = None) -> Path:
        """
        Map a slash-separated remote path (and optional file name) to disk.

        Raises:
            MirrorPathError: If the result would escape the mirror root
        """
        target = self.base_path
        for segment in folder_path.split("/") if folder_path else []:
            target = target / segment
        if name is not None:
            target = target / name

        resolved = target.resolve()
        if resolved == self.base_path and name is None:
            return resolved
        if not resolved.is_relative_to(self.base_path) or resolved == self.base_path:
            raise MirrorPathError(f"Path {folder_path!r}/{name!r} escapes mirror root {self.base_path}")
        if resolved.parts[len(self.base_path.parts)] == ".git":
            raise MirrorPathError(f"Refusing to write into the git directory: {folder_path!r}")
        return resolved

    async def ensure_folder(self, folder_path: str = "") -> Path:
        """
        Ensure a mirror folder and all its ancestors exist.

        Args:
            folder_path: Slash-separated folder path, "" for the mirror root

        Returns:
            Absolute path of the folder
        """
        target = self.resolve(folder_path)
        target.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured folder exists: {target}")
        return target

    async def write_note(self, folder_path: str, name: str, text: str) -> Path:
        """
        Overwrite a note file with ``text`` and exactly one trailing newline.

        The write is unconditional; unchanged content yields no git diff.

        Args:
            folder_path: Slash-separated folder path, "" for root-level notes
            name: File name of the note
            text: Annotated note text

        Returns:
            Path to the written file
        """
        file_path = self.resolve(folder_path, name)
        content = text.rstrip("\n") + "\n"
        async with aiofiles.open(file_path, "w", encoding="utf-8", newline="\n") as f:
            await f.write(content)
        logger.debug(f"Wrote note: {file_path}")
        return file_path
