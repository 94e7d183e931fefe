"""Catalog storage: connection managers and schema migrations."""
from __future__ import annotations

from .errors import MigrationError, StorageError
from .manager import (
    ConnectionManager,
    FileConnectionManager,
    MemoryConnectionManager,
    open_storage,
)

__all__ = [
    "ConnectionManager",
    "FileConnectionManager",
    "MemoryConnectionManager",
    "MigrationError",
    "StorageError",
    "open_storage",
]
