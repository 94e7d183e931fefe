"""Shared helpers: paths, settings, SQLite and logging."""
