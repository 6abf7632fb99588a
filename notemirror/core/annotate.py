"""Front-matter annotation for mirrored notes.

Each note gets a leading block delimited by two ``---`` lines that records
when the note was created and last updated in the remote store::

    ---
    created: 2024-01-01T00:00:00.000Z
    last_updated: 2024-02-01T09:30:00.000Z
    ---

    Note body...

Existing blocks are updated in place; unrelated keys keep their order.
"""

import re
import warnings
from datetime import datetime

from notemirror.core.exceptions import MalformedFrontMatterWarning
from notemirror.utils.converters import format_iso

DELIMITER = "---"
CREATED_KEY = "created"
UPDATED_KEY = "last_updated"

_KEY_VALUE = re.compile(r"^\s*([^:\s][^:]*?)\s*:\s*(.*)$")


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r") == DELIMITER


def _closing_index(lines: list[str]) -> int | None:
    for index in range(1, len(lines)):
        if _is_delimiter(lines[index]):
            return index
    return None


def parse_front_matter(text: str) -> dict[str, str] | None:
    """Return the ``key: value`` pairs of the leading block, or None without one."""
    lines = text.strip().split("\n")
    if not _is_delimiter(lines[0]):
        return None
    end = _closing_index(lines)
    if end is None:
        return None

    metadata: dict[str, str] = {}
    for line in lines[1:end]:
        match = _KEY_VALUE.match(line.rstrip("\r"))
        if match:
            metadata.setdefault(match.group(1), match.group(2).strip())
    return metadata


def annotate(text: str, created_at: datetime, updated_at: datetime) -> str:
    """Insert or update ``created`` / ``last_updated`` in the note's front matter.

    Applying this twice with the same timestamps yields the same text. A block
    that is opened but never closed is returned unchanged with a
    :class:`MalformedFrontMatterWarning`; its timestamps are not updated.
    """
    created = format_iso(created_at)
    updated = format_iso(updated_at)
    content = text.strip()
    lines = content.split("\n")

    if not _is_delimiter(lines[0]):
        header = f"{DELIMITER}\n{CREATED_KEY}: {created}\n{UPDATED_KEY}: {updated}\n{DELIMITER}"
        return f"{header}\n\n{content}"

    end = _closing_index(lines)
    if end is None:
        warnings.warn(
            "Front-matter block is never closed; timestamps were not updated",
            MalformedFrontMatterWarning,
            stacklevel=2,
        )
        return text

    replacements = {CREATED_KEY: created, UPDATED_KEY: updated}
    seen: set[str] = set()
    block: list[str] = []
    for line in lines[1:end]:
        match = _KEY_VALUE.match(line.rstrip("\r"))
        key = match.group(1).lower() if match else None
        if key in replacements:
            if key in seen:
                # Drop duplicates so each key appears exactly once.
                continue
            seen.add(key)
            block.append(f"{key}: {replacements[key]}")
        else:
            block.append(line)

    for key in (CREATED_KEY, UPDATED_KEY):
        if key not in seen:
            block.append(f"{key}: {replacements[key]}")

    return "\n".join([DELIMITER, *block, DELIMITER, *lines[end + 1 :]])
