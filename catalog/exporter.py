"""Catalog export utilities."""
from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from scan.types import FileType
from storage.manager import ConnectionManager

from .store import list_records, record_to_dict

EXPORT_FORMATS = ("jsonl", "csv")
CSV_HEADERS = (
    "path",
    "file_type",
    "title",
    "author",
    "thing_id",
    "size_bytes",
    "modified_utc",
    "model_count",
    "image_count",
    "generation",
)
_PAGE_SIZE = 500


def _timestamp_dir(base: Path) -> Path:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")
    target = base / "catalog" / timestamp
    target.mkdir(parents=True, exist_ok=True)
    return target


def _iter_all_records(storage: ConnectionManager, file_type: Optional[FileType]) -> Iterator[Dict[str, object]]:
    offset = 0
    while True:
        with storage.connection() as conn:
            page = list_records(conn, file_type=file_type, limit=_PAGE_SIZE, offset=offset)
        for record in page:
            yield record_to_dict(record)
        if len(page) < _PAGE_SIZE:
            break
        offset += len(page)


def _write_jsonl(path: Path, rows: Iterable[Dict[str, object]]) -> int:
    count = 0
    with path.open("w", encoding="utf-8") as handle:
        for row in rows:
            handle.write(json.dumps(row, ensure_ascii=False) + "\n")
            count += 1
    return count


def _write_csv(path: Path, rows: Iterable[Dict[str, object]]) -> int:
    count = 0
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(CSV_HEADERS))
        writer.writeheader()
        for row in rows:
            writer.writerow({key: row.get(key) for key in CSV_HEADERS})
            count += 1
    return count


def export_catalog(
    storage: ConnectionManager,
    target_dir: Path,
    *,
    format: str = "jsonl",
    file_type: Optional[FileType] = None,
) -> List[Path]:
    """Write every catalog record below a timestamped folder of *target_dir*."""

    format = format.lower()
    if format not in EXPORT_FORMATS:
        raise ValueError("unsupported export format")
    out_dir = _timestamp_dir(Path(target_dir))
    rows = _iter_all_records(storage, file_type)
    path = out_dir / f"file_records.{format}"
    if format == "jsonl":
        _write_jsonl(path, rows)
    else:
        _write_csv(path, rows)
    return [path]


__all__ = ["CSV_HEADERS", "EXPORT_FORMATS", "export_catalog"]
