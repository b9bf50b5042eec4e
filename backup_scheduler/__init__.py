"""Scheduled cleanup of per-user backup directories."""

__version__ = "1.0.0"
