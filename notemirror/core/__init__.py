"""Backup engine: tree discovery, annotation, indexes, repository sync."""
