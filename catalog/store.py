"""SQL access to the ``file_records`` and ``scan_runs`` tables.

Every function takes an open connection; callers own the connection and the
transaction.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from scan.types import FileRecord, FileType, ThingMetadata

_RECORD_COLUMNS = (
    "path, file_type, title, author, thing_id, size_bytes, modified_utc, "
    "model_count, image_count, generation, updated_utc"
)

_UPSERT_SQL = f"""
INSERT INTO file_records({_RECORD_COLUMNS})
VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    file_type=excluded.file_type,
    title=excluded.title,
    author=excluded.author,
    thing_id=excluded.thing_id,
    size_bytes=excluded.size_bytes,
    modified_utc=excluded.modified_utc,
    model_count=excluded.model_count,
    image_count=excluded.image_count,
    generation=excluded.generation,
    updated_utc=excluded.updated_utc
"""


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _utc_from_epoch(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def upsert_record(conn: sqlite3.Connection, record: FileRecord, *, updated_utc: Optional[str] = None) -> None:
    meta = record.metadata or ThingMetadata()
    conn.execute(
        _UPSERT_SQL,
        (
            record.path,
            record.file_type.value,
            meta.title,
            meta.author,
            meta.thing_id,
            record.size_bytes,
            record.modified_utc,
            record.model_count,
            record.image_count,
            record.generation,
            updated_utc or utc_now(),
        ),
    )


def row_to_record(row: sqlite3.Row) -> FileRecord:
    file_type = FileType(row["file_type"])
    metadata: Optional[ThingMetadata] = None
    if file_type is FileType.THINGIVERSE_ARCHIVE:
        metadata = ThingMetadata(title=row["title"], author=row["author"], thing_id=row["thing_id"])
    return FileRecord(
        path=row["path"],
        file_type=file_type,
        metadata=metadata,
        size_bytes=row["size_bytes"],
        modified_utc=row["modified_utc"],
        model_count=row["model_count"],
        image_count=row["image_count"],
        generation=row["generation"],
    )


def record_to_dict(record: FileRecord) -> Dict[str, Any]:
    meta = record.metadata
    return {
        "path": record.path,
        "file_type": record.file_type.value,
        "title": meta.title if meta else None,
        "author": meta.author if meta else None,
        "thing_id": meta.thing_id if meta else None,
        "size_bytes": record.size_bytes,
        "modified_utc": record.modified_utc,
        "model_count": record.model_count,
        "image_count": record.image_count,
        "generation": record.generation,
    }


def get_record(conn: sqlite3.Connection, path: str) -> Optional[FileRecord]:
    row = conn.execute(f"SELECT {_RECORD_COLUMNS} FROM file_records WHERE path=?", (path,)).fetchone()
    if row is None:
        return None
    return row_to_record(row)


def list_records(
    conn: sqlite3.Connection,
    *,
    file_type: Optional[FileType] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[FileRecord]:
    params: List[Any] = []
    where = ""
    if file_type is not None:
        where = "WHERE file_type=?"
        params.append(FileType(file_type).value)
    params.extend([max(0, int(limit)), max(0, int(offset))])
    rows = conn.execute(
        f"SELECT {_RECORD_COLUMNS} FROM file_records {where} ORDER BY path LIMIT ? OFFSET ?",
        params,
    ).fetchall()
    return [row_to_record(row) for row in rows]


def count_records(conn: sqlite3.Connection, *, file_type: Optional[FileType] = None) -> int:
    if file_type is None:
        row = conn.execute("SELECT COUNT(*) FROM file_records").fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) FROM file_records WHERE file_type=?",
            (FileType(file_type).value,),
        ).fetchone()
    return int(row[0]) if row else 0


def count_by_type(conn: sqlite3.Connection) -> Dict[str, int]:
    rows = conn.execute("SELECT file_type, COUNT(*) FROM file_records GROUP BY file_type").fetchall()
    return {str(row[0]): int(row[1]) for row in rows}


def record_scan_run(
    conn: sqlite3.Connection,
    *,
    generation: str,
    start_time: Optional[float],
    end_time: Optional[float],
    queued: int,
    completed: int,
    failed: int,
    records: int,
    cancelled: bool,
) -> None:
    conn.execute(
        """
        INSERT INTO scan_runs(generation, started_utc, ended_utc, queued, completed, failed, records, cancelled)
        VALUES(?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(generation) DO UPDATE SET
            ended_utc=excluded.ended_utc,
            queued=excluded.queued,
            completed=excluded.completed,
            failed=excluded.failed,
            records=excluded.records,
            cancelled=excluded.cancelled
        """,
        (
            generation,
            _utc_from_epoch(start_time) or utc_now(),
            _utc_from_epoch(end_time),
            int(queued),
            int(completed),
            int(failed),
            int(records),
            1 if cancelled else 0,
        ),
    )


def list_scan_runs(conn: sqlite3.Connection, limit: int = 20) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT generation, started_utc, ended_utc, queued, completed, failed, records, cancelled
        FROM scan_runs
        ORDER BY started_utc DESC, rowid DESC
        LIMIT ?
        """,
        (max(1, int(limit)),),
    ).fetchall()
    runs: List[Dict[str, Any]] = []
    for row in rows:
        item = dict(row)
        item["cancelled"] = bool(item.get("cancelled"))
        runs.append(item)
    return runs


__all__ = [
    "count_by_type",
    "count_records",
    "get_record",
    "list_records",
    "list_scan_runs",
    "record_scan_run",
    "record_to_dict",
    "row_to_record",
    "upsert_record",
    "utc_now",
]
