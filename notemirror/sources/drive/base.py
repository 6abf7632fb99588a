"""Base class for remote note store implementations."""

from abc import ABC, abstractmethod

from notemirror.core.models import RemoteItem, SavedNote


class RemoteStore(ABC):
    """
    Abstract base class for the hierarchical store notes are backed up from.

    Implementations must return every item of a listing, following the
    provider's pagination until it is exhausted.
    """

    @abstractmethod
    async def list_child_folders(self, parent_id: str) -> list[RemoteItem]:
        """
        List folders directly inside a folder.

        Args:
            parent_id: Provider-specific folder identifier

        Returns:
            Non-trashed child folders
        """

    @abstractmethod
    async def list_child_notes(self, parent_id: str) -> list[RemoteItem]:
        """
        List notes directly inside a folder.

        Args:
            parent_id: Provider-specific folder identifier

        Returns:
            Non-trashed child notes with creation and modification times
        """

    @abstractmethod
    async def get_content(self, file_id: str) -> str:
        """Download the text content of a note."""

    @abstractmethod
    async def get_or_create_folder(self, parent_id: str, name: str) -> str:
        """Return the ID of the named child folder, creating it if missing."""

    @abstractmethod
    async def create_or_update_note(self, parent_id: str, filename: str, text: str) -> SavedNote:
        """Create the note, or replace the content of an existing one with the same name."""

    async def close(self) -> None:
        """Release network resources."""
