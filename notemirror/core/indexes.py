"""Navigation index generation for the mirror.

Every category folder gets an ``index.md`` listing its notes, and the mirror
root gets an ``index.md`` listing the top-level categories. Both are rendered
from scratch on every run.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

import aiofiles

from notemirror.core.models import CategorySummary, IndexEntry

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.md"
ROOT_HEADING = "# Notes Index"
NO_DATE_PLACEHOLDER = "—"
FOOTER_SEPARATOR = "\n---\n"


def display_name(filename: str) -> str:
    """Strip the ``.md`` extension for link text."""
    return filename[: -len(".md")] if filename.endswith(".md") else filename


def render_footer(backup_stamp: str) -> str:
    return f"{FOOTER_SEPARATOR}_Backup generated automatically at {backup_stamp}_\n"


def render_category_index(category_name: str, entries: Iterable[IndexEntry]) -> str:
    """Render the body (everything above the footer) of a category index."""
    ordered = sorted(entries, key=lambda e: display_name(e.name))
    last_updated = max((e.date for e in ordered), default=NO_DATE_PLACEHOLDER)

    lines = [
        f"# Index – {category_name} Notes",
        "",
        f"_Last updated: {last_updated}_",
        "",
    ]
    for entry in ordered:
        lines.append(f"- [{display_name(entry.name)}](./{entry.name}) — {entry.date}")
    return "\n".join(lines) + "\n"


def render_root_index(categories: Iterable[CategorySummary]) -> str:
    """Render the body (everything above the footer) of the root index."""
    lines = [ROOT_HEADING, ""]
    for category in sorted(categories, key=lambda c: c.name):
        link = f"./{category.path}/{INDEX_FILENAME}" if category.path else f"./{INDEX_FILENAME}"
        lines.append(f"- [{category.name}]({link}) — last updated {category.last_updated}")
    return "\n".join(lines) + "\n"


class IndexGenerator:
    """Writes category and root ``index.md`` files under the mirror root."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    async def write_category_index(
        self,
        folder_path: Path,
        category_name: str,
        entries: list[IndexEntry],
        backup_stamp: str,
    ) -> Path:
        """
        Write ``index.md`` for one category folder.

        Args:
            folder_path: Directory of the category on disk
            category_name: Category name shown in the heading
            entries: Notes written directly in the folder
            backup_stamp: Generation time shown in the footer
        """
        index_path = Path(folder_path) / INDEX_FILENAME
        body = render_category_index(category_name, entries)
        await self._write(index_path, body, backup_stamp)
        return index_path

    async def write_root_index(self, categories: list[CategorySummary], backup_stamp: str) -> Path:
        """Write the root ``index.md`` listing top-level categories."""
        index_path = self.base_path / INDEX_FILENAME
        body = render_root_index(categories)
        await self._write(index_path, body, backup_stamp)
        return index_path

    async def _write(self, index_path: Path, body: str, backup_stamp: str) -> None:
        # Keep the previous file when only the footer stamp would change, so an
        # unchanged tree leaves the working copy clean.
        if index_path.exists():
            async with aiofiles.open(index_path, "r", encoding="utf-8") as f:
                existing = await f.read()
            previous_body, separator, _ = existing.rpartition(FOOTER_SEPARATOR)
            if separator and previous_body == body:
                logger.debug(f"Index unchanged: {index_path}")
                return

        async with aiofiles.open(index_path, "w", encoding="utf-8", newline="\n") as f:
            await f.write(body + render_footer(backup_stamp))
        logger.debug(f"Wrote index: {index_path}")
