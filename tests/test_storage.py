import sqlite3

import pytest

from storage.errors import MigrationError, StorageError
from storage.manager import FileConnectionManager, MemoryConnectionManager, open_storage
from storage.migrations import MIGRATIONS, Migration, applied_versions, apply_migrations


def _tables(conn):
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {row[0] for row in rows}


def test_file_migrations_are_idempotent(tmp_path):
    manager = FileConnectionManager(tmp_path / "nested" / "catalog.db")

    first = manager.migrate()
    second = manager.migrate()

    assert first == [migration.name for migration in MIGRATIONS]
    assert second == []
    with manager.connection() as conn:
        assert {"directories", "file_records", "scan_runs", "schema_migrations"} <= _tables(conn)
        assert applied_versions(conn) == [1, 2, 3]
        assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"


def test_memory_database_is_shared_until_closed():
    manager = MemoryConnectionManager("test-shared-memory")
    try:
        manager.migrate()
        with manager.connection() as writer:
            writer.execute("INSERT INTO directories(name) VALUES('/models')")
        with manager.connection() as reader:
            assert reader.execute("SELECT name FROM directories").fetchall()[0]["name"] == "/models"
    finally:
        manager.close()

    with pytest.raises(StorageError):
        manager.get_connection()


def test_memory_databases_are_isolated_by_name():
    first = MemoryConnectionManager("test-isolated-a")
    second = MemoryConnectionManager("test-isolated-b")
    try:
        first.migrate()
        with second.connection() as conn:
            assert "directories" not in _tables(conn)
    finally:
        first.close()
        second.close()


def test_failed_migration_raises_and_rolls_back(tmp_path):
    broken = (Migration(1, "broken", ("CREATE TABLE ok_table (id INTEGER)", "CREATE TABLE")),)
    manager = FileConnectionManager(tmp_path / "catalog.db")

    with manager.connection() as conn:
        with pytest.raises(MigrationError):
            apply_migrations(conn, broken)
        assert "ok_table" not in _tables(conn)
        assert applied_versions(conn) == []


def test_unreachable_file_store_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    manager = FileConnectionManager(blocker / "catalog.db")

    with pytest.raises(StorageError):
        manager.get_connection()


def test_open_storage_selects_backend(tmp_path):
    file_manager = open_storage({"storage": {"backend": "file", "path": None}}, tmp_path)
    assert isinstance(file_manager, FileConnectionManager)
    assert file_manager.path == tmp_path / "data" / "catalog.db"

    memory_manager = open_storage({"storage": {"backend": "memory", "memory_name": "test-open"}}, tmp_path)
    try:
        assert isinstance(memory_manager, MemoryConnectionManager)
        assert memory_manager.describe() == "memory:test-open"
    finally:
        memory_manager.close()

    with pytest.raises(StorageError):
        open_storage({"storage": {"backend": "postgres"}}, tmp_path)


def test_rows_are_addressable_by_name(tmp_path):
    manager = FileConnectionManager(tmp_path / "catalog.db")
    manager.migrate()
    with manager.connection() as conn:
        row = conn.execute("SELECT COUNT(*) AS total FROM file_records").fetchone()
    assert isinstance(row, sqlite3.Row)
    assert row["total"] == 0
