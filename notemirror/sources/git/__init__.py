"""Git command line adapter."""

from .runner import GitRunner

__all__ = ["GitRunner"]
