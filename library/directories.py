"""The list of directories the scanner visits."""
from __future__ import annotations

import logging
import sqlite3
from typing import List

from core.db import transaction
from storage.errors import StorageError
from storage.manager import ConnectionManager

LOGGER = logging.getLogger("stlcatalog.library.directories")


class DirectorySettings:
    """Persisted, de-duplicated list of directories to scan."""

    def __init__(self, storage: ConnectionManager) -> None:
        self._storage = storage

    def list_dirs(self) -> List[str]:
        """Return every configured directory in alphabetical order."""

        try:
            with self._storage.connection() as conn:
                rows = conn.execute("SELECT name FROM directories ORDER BY name").fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot list directories: {exc}") from exc
        return [str(row[0]) for row in rows]

    def add_dir(self, directory: str) -> bool:
        """Register *directory*; returns ``False`` when it was already listed."""

        name = (directory or "").strip()
        if not name:
            raise ValueError("directory must not be empty")
        try:
            with self._storage.connection() as conn:
                with transaction(conn):
                    cursor = conn.execute(
                        "INSERT INTO directories(name) VALUES(?) ON CONFLICT(name) DO NOTHING",
                        (name,),
                    )
                    added = cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise StorageError(f"cannot add directory {name!r}: {exc}") from exc
        if added:
            LOGGER.info("Added scan directory %s", name)
        return added

    def remove_dir(self, directory: str) -> bool:
        name = (directory or "").strip()
        try:
            with self._storage.connection() as conn:
                with transaction(conn):
                    cursor = conn.execute("DELETE FROM directories WHERE name=?", (name,))
                    removed = cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise StorageError(f"cannot remove directory {name!r}: {exc}") from exc
        if removed:
            LOGGER.info("Removed scan directory %s", name)
        return removed

    def clear_dirs(self) -> None:
        try:
            with self._storage.connection() as conn:
                with transaction(conn):
                    conn.execute("DELETE FROM directories")
        except sqlite3.Error as exc:
            raise StorageError(f"cannot clear directories: {exc}") from exc


__all__ = ["DirectorySettings"]
