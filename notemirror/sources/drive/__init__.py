"""Remote note store adapters."""

from .base import RemoteStore
from .client import DriveClient

__all__ = ["DriveClient", "RemoteStore"]
