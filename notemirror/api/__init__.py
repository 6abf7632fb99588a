"""HTTP API for saving notes and triggering backups."""
