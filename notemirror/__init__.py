"""noteMirror - back up Google Drive notes to a GitHub repository."""

from notemirror.version import get_version

__version__ = get_version()
