"""Durable catalog writes."""
from __future__ import annotations

import logging
import sqlite3
import threading

from core.db import transaction
from scan.types import FileRecord
from storage.errors import StorageError
from storage.manager import ConnectionManager

from .store import upsert_record, utc_now

LOGGER = logging.getLogger("stlcatalog.catalog.writer")


class CatalogError(StorageError):
    """A record could not be written to the catalog."""


class CatalogWriter:
    """Upsert records keyed by canonical path, one connection per call."""

    def __init__(self, storage: ConnectionManager) -> None:
        self._storage = storage
        self._lock = threading.Lock()
        self._written = 0

    @property
    def records_written(self) -> int:
        with self._lock:
            return self._written

    def record(self, record: FileRecord) -> None:
        try:
            with self._storage.connection() as conn:
                with transaction(conn):
                    upsert_record(conn, record, updated_utc=utc_now())
        except CatalogError:
            raise
        except (sqlite3.Error, StorageError) as exc:
            raise CatalogError(f"cannot write {record.path}: {exc}") from exc
        with self._lock:
            self._written += 1
        LOGGER.debug("Catalogued %s as %s", record.path, record.file_type.value)


__all__ = ["CatalogError", "CatalogWriter"]
