"""Versioned, idempotent schema migrations for the catalog database."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from core.db import transaction

from .errors import MigrationError

LOGGER = logging.getLogger("stlcatalog.storage.migrations")

_LEDGER_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_utc TEXT NOT NULL
)
"""


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    name: str
    statements: Tuple[str, ...]


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        1,
        "directories",
        (
            """
            CREATE TABLE IF NOT EXISTS directories (
                name TEXT PRIMARY KEY NOT NULL
            )
            """,
        ),
    ),
    Migration(
        2,
        "file_records",
        (
            """
            CREATE TABLE IF NOT EXISTS file_records (
                path TEXT PRIMARY KEY NOT NULL,
                file_type TEXT NOT NULL,
                title TEXT,
                author TEXT,
                thing_id TEXT,
                size_bytes INTEGER,
                modified_utc TEXT,
                model_count INTEGER,
                image_count INTEGER,
                generation TEXT,
                updated_utc TEXT NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_file_records_type ON file_records(file_type)",
        ),
    ),
    Migration(
        3,
        "scan_runs",
        (
            """
            CREATE TABLE IF NOT EXISTS scan_runs (
                generation TEXT PRIMARY KEY NOT NULL,
                started_utc TEXT NOT NULL,
                ended_utc TEXT,
                queued INTEGER NOT NULL DEFAULT 0,
                completed INTEGER NOT NULL DEFAULT 0,
                failed INTEGER NOT NULL DEFAULT 0,
                records INTEGER NOT NULL DEFAULT 0,
                cancelled INTEGER NOT NULL DEFAULT 0
            )
            """,
        ),
    ),
)


def applied_versions(conn: sqlite3.Connection) -> List[int]:
    conn.execute(_LEDGER_SQL)
    rows = conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()
    return [int(row[0]) for row in rows]


def apply_migrations(
    conn: sqlite3.Connection,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> List[str]:
    """Apply every pending migration on *conn* and return the names applied.

    Each migration runs in its own ``BEGIN IMMEDIATE`` transaction and the
    ledger is re-read inside it, so concurrent callers never apply a version
    twice.
    """

    executed: List[str] = []
    try:
        conn.execute(_LEDGER_SQL)
        for migration in sorted(migrations, key=lambda item: item.version):
            with transaction(conn):
                row = conn.execute(
                    "SELECT 1 FROM schema_migrations WHERE version=?",
                    (migration.version,),
                ).fetchone()
                if row:
                    continue
                for statement in migration.statements:
                    conn.execute(statement)
                conn.execute(
                    "INSERT INTO schema_migrations(version, name, applied_utc) VALUES(?, ?, ?)",
                    (
                        migration.version,
                        migration.name,
                        datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                    ),
                )
            LOGGER.info("Applied schema migration %03d_%s", migration.version, migration.name)
            executed.append(migration.name)
    except sqlite3.Error as exc:
        raise MigrationError(f"schema migration failed: {exc}") from exc
    return executed


__all__ = ["MIGRATIONS", "Migration", "applied_versions", "apply_migrations"]
