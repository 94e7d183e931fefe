"""Error hierarchy for catalog storage."""
from __future__ import annotations


class StorageError(RuntimeError):
    """Raised when the backing store is unreachable or a query fails."""


class MigrationError(StorageError):
    """Raised when a schema migration cannot be applied."""


__all__ = ["MigrationError", "StorageError"]
