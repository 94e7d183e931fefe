"""Connection managers for the catalog database.

A connection manager owns the location of the SQLite database and hands out
fresh connections. Callers close what they open; no connection is shared
between threads.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from core.db import configure_connection, connect
from core.paths import expand_user_path, get_catalog_db_path

from .errors import StorageError
from .migrations import apply_migrations

LOGGER = logging.getLogger("stlcatalog.storage")

BACKEND_FILE = "file"
BACKEND_MEMORY = "memory"


def _connect_shared_memory(name: str, *, timeout: float = 5.0) -> sqlite3.Connection:
    conn = sqlite3.connect(
        f"file:{name}?mode=memory&cache=shared",
        uri=True,
        timeout=timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    configure_connection(conn, enable_wal=False)
    return conn


class ConnectionManager:
    """Base class: subclasses implement :meth:`_open`."""

    backend = ""

    def _open(self) -> sqlite3.Connection:
        raise NotImplementedError

    def get_connection(self) -> sqlite3.Connection:
        try:
            conn = self._open()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open {self.describe()}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_connection()
        try:
            yield conn
        finally:
            conn.close()

    def migrate(self) -> List[str]:
        with self.connection() as conn:
            return apply_migrations(conn)

    def describe(self) -> str:
        return self.backend

    def close(self) -> None:
        return None


class MemoryConnectionManager(ConnectionManager):
    """Shared-cache in-memory database, alive as long as this manager is open.

    *name* distinguishes independent databases (one per test, for example).
    """

    backend = BACKEND_MEMORY

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()
        try:
            self._keeper: Optional[sqlite3.Connection] = _connect_shared_memory(name)
        except sqlite3.Error as exc:
            raise StorageError(f"cannot create in-memory database {name!r}: {exc}") from exc

    @property
    def name(self) -> str:
        return self._name

    def _open(self) -> sqlite3.Connection:
        with self._lock:
            if self._keeper is None:
                raise StorageError(f"in-memory database {self._name!r} is closed")
        return _connect_shared_memory(self._name)

    def describe(self) -> str:
        return f"memory:{self._name}"

    def close(self) -> None:
        with self._lock:
            keeper, self._keeper = self._keeper, None
        if keeper is not None:
            keeper.close()


class FileConnectionManager(ConnectionManager):
    """Persistent SQLite database stored in a file (WAL journal)."""

    backend = BACKEND_FILE

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _open(self) -> sqlite3.Connection:
        try:
            return connect(self._path)
        except OSError as exc:
            raise StorageError(f"cannot create database directory for {self._path}: {exc}") from exc

    def describe(self) -> str:
        return str(self._path)


def open_storage(settings: Dict[str, Any], working_dir: Path) -> ConnectionManager:
    """Build the connection manager selected by ``settings['storage']['backend']``."""

    storage_cfg = settings.get("storage") if isinstance(settings.get("storage"), dict) else {}
    backend = str(storage_cfg.get("backend") or BACKEND_FILE).lower()
    if backend == BACKEND_MEMORY:
        name = str(storage_cfg.get("memory_name") or "stlcatalog")
        LOGGER.info("Using in-memory catalog %s", name)
        return MemoryConnectionManager(name)
    if backend == BACKEND_FILE:
        raw_path = storage_cfg.get("path")
        path = expand_user_path(str(raw_path)) if raw_path else get_catalog_db_path(working_dir)
        LOGGER.info("Using catalog database %s", path)
        return FileConnectionManager(path)
    raise StorageError(f"unknown storage backend: {backend!r}")


__all__ = [
    "BACKEND_FILE",
    "BACKEND_MEMORY",
    "ConnectionManager",
    "FileConnectionManager",
    "MemoryConnectionManager",
    "open_storage",
]
