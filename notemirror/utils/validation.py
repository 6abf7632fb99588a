"""Input validation for note names, categories and Drive queries."""

from __future__ import annotations

import re

MAX_FILENAME_LENGTH = 255
MAX_CATEGORY_LENGTH = 200
MAX_CATEGORY_DEPTH = 10

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_CATEGORY_SEGMENT = re.compile(r"^[A-Za-z0-9 _-]+$")


def sanitize_for_drive_query(value: str) -> str:
    """Escape backslashes and single quotes for a Drive ``q`` parameter."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def validate_filename(filename: str) -> str:
    """Return ``filename`` if it is a safe markdown file name.

    Raises:
        ValueError: With a human readable reason otherwise
    """
    if _INVALID_FILENAME_CHARS.search(filename):
        raise ValueError("Filename contains invalid characters")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise ValueError("Filename cannot contain path separators")
    if not filename.endswith(".md"):
        raise ValueError("Filename must end with .md")
    if len(filename) > MAX_FILENAME_LENGTH:
        raise ValueError("Filename too long")
    return filename


def validate_category(category: str) -> str:
    """Return ``category`` if it is a valid, possibly nested, category path.

    Segments are separated by ``/`` and may contain letters, digits, spaces,
    hyphens and underscores.

    Raises:
        ValueError: With a human readable reason otherwise
    """
    if not category:
        raise ValueError("Category cannot be empty")
    if len(category) > MAX_CATEGORY_LENGTH:
        raise ValueError("Category name too long")
    if category.startswith("/") or category.endswith("/"):
        raise ValueError("Category cannot start or end with a slash")

    segments = category.split("/")
    if len(segments) > MAX_CATEGORY_DEPTH:
        raise ValueError(f"Category cannot be nested more than {MAX_CATEGORY_DEPTH} levels")
    for segment in segments:
        if not segment:
            raise ValueError("Category cannot contain empty segments")
        if segment in {".", ".."}:
            raise ValueError("Category cannot contain relative path segments")
        if not _CATEGORY_SEGMENT.match(segment):
            raise ValueError("Category contains invalid characters")
    return category
