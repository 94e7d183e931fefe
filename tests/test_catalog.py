import csv
import json

import pytest

from catalog.exporter import export_catalog
from catalog.store import count_by_type, count_records, get_record, list_records, list_scan_runs, record_scan_run
from catalog.writer import CatalogError, CatalogWriter
from core.db import transaction
from scan.types import FileRecord, FileType, ThingMetadata
from storage.manager import MemoryConnectionManager


def _thing(path, generation="g1", title="Benchy"):
    return FileRecord(
        path=path,
        file_type=FileType.THINGIVERSE_ARCHIVE,
        metadata=ThingMetadata(title=title, author="Makerbot", thing_id="763622"),
        size_bytes=2048,
        modified_utc="2024-01-01T00:00:00Z",
        model_count=2,
        image_count=1,
        generation=generation,
    )


def test_writer_upserts_by_path(storage):
    writer = CatalogWriter(storage)

    writer.record(_thing("/prints/benchy.zip", generation="g1"))
    writer.record(_thing("/prints/benchy.zip", generation="g2", title="Benchy v2"))
    writer.record(FileRecord(path="/prints/cube.stl", file_type=FileType.STL, size_bytes=10))

    assert writer.records_written == 3
    with storage.connection() as conn:
        assert count_records(conn) == 2
        record = get_record(conn, "/prints/benchy.zip")
        assert get_record(conn, "/prints/missing.stl") is None
    assert record is not None
    assert record.generation == "g2"
    assert record.metadata == ThingMetadata(title="Benchy v2", author="Makerbot", thing_id="763622")
    assert record.model_count == 2


def test_writer_wraps_storage_failures():
    manager = MemoryConnectionManager("test-writer-closed")
    manager.close()
    writer = CatalogWriter(manager)

    with pytest.raises(CatalogError):
        writer.record(FileRecord(path="/prints/cube.stl", file_type=FileType.STL))
    assert writer.records_written == 0


def test_list_records_filters_and_pages(storage):
    writer = CatalogWriter(storage)
    for idx in range(5):
        writer.record(FileRecord(path=f"/prints/part{idx}.stl", file_type=FileType.STL))
    writer.record(_thing("/prints/benchy.zip"))

    with storage.connection() as conn:
        stl_page = list_records(conn, file_type=FileType.STL, limit=2, offset=2)
        assert [record.path for record in stl_page] == ["/prints/part2.stl", "/prints/part3.stl"]
        assert count_records(conn, file_type=FileType.THINGIVERSE_ARCHIVE) == 1
        assert count_by_type(conn) == {"stl": 5, "thingiverse_archive": 1}


def test_scan_runs_are_archived(storage):
    with storage.connection() as conn:
        with transaction(conn):
            record_scan_run(
                conn,
                generation="g1",
                start_time=1_700_000_000.0,
                end_time=1_700_000_002.0,
                queued=4,
                completed=4,
                failed=1,
                records=2,
                cancelled=False,
            )
        runs = list_scan_runs(conn)

    assert len(runs) == 1
    assert runs[0]["generation"] == "g1"
    assert runs[0]["started_utc"] == "2023-11-14T22:13:20Z"
    assert runs[0]["records"] == 2
    assert runs[0]["cancelled"] is False


def test_export_jsonl_and_csv(tmp_path, storage):
    writer = CatalogWriter(storage)
    writer.record(_thing("/prints/benchy.zip"))
    writer.record(FileRecord(path="/prints/cube.stl", file_type=FileType.STL, size_bytes=10))

    [jsonl_path] = export_catalog(storage, tmp_path / "exports", format="jsonl")
    rows = [json.loads(line) for line in jsonl_path.read_text(encoding="utf-8").splitlines()]
    assert [row["path"] for row in rows] == ["/prints/benchy.zip", "/prints/cube.stl"]
    assert rows[0]["author"] == "Makerbot"

    [csv_path] = export_catalog(storage, tmp_path / "exports", format="CSV", file_type=FileType.STL)
    with csv_path.open(encoding="utf-8", newline="") as handle:
        csv_rows = list(csv.DictReader(handle))
    assert [row["path"] for row in csv_rows] == ["/prints/cube.stl"]

    with pytest.raises(ValueError):
        export_catalog(storage, tmp_path / "exports", format="xml")
