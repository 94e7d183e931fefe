"""Command-line entry point for the STL catalog."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from catalog.exporter import EXPORT_FORMATS, export_catalog
from catalog.store import count_records, list_records, record_to_dict
from core.logging_utils import configure_console_logging, configure_json_logging
from core.paths import ensure_working_dir_structure, expand_user_path, get_exports_dir, resolve_working_dir
from core.settings import load_settings
from library.directories import DirectorySettings
from scan.api import ScanService
from scan.errors import ScanError
from scan.logs import ScanLogger
from scan.orchestrator import ScanOrchestrator
from scan.types import FileType, ScanSettings
from storage.errors import MigrationError, StorageError
from storage.manager import ConnectionManager, open_storage

LOGGER = logging.getLogger("stlcatalog.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Catalog STL models and 3D-print archives.")
    parser.add_argument("--working-dir", default=None, help="Override the working directory (default: $STLCATALOG_HOME)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="Create or upgrade the catalog schema")

    dirs = sub.add_parser("dirs", help="Manage the directories to scan")
    dirs_sub = dirs.add_subparsers(dest="dirs_command", required=True)
    dirs_sub.add_parser("list", help="List configured directories")
    add = dirs_sub.add_parser("add", help="Add a directory")
    add.add_argument("directory")
    remove = dirs_sub.add_parser("remove", help="Remove a directory")
    remove.add_argument("directory")

    scan = sub.add_parser("scan", help="Scan every configured directory and wait for completion")
    scan.add_argument("--workers", type=int, default=None, help="Worker threads (default from settings.json)")
    scan.add_argument("--poll", type=float, default=1.0, help="Progress poll interval in seconds")

    listing = sub.add_parser("list", help="List catalogued files")
    listing.add_argument("--type", dest="file_type", choices=[item.value for item in FileType], default=None)
    listing.add_argument("--limit", type=int, default=100)
    listing.add_argument("--offset", type=int, default=0)
    listing.add_argument("--json", action="store_true", help="Print one JSON object per line")

    export = sub.add_parser("export", help="Export the catalog")
    export.add_argument("--format", default="jsonl", choices=list(EXPORT_FORMATS))
    export.add_argument("--type", dest="file_type", choices=[item.value for item in FileType], default=None)
    export.add_argument("--output", default=None, help="Target folder (default: <working_dir>/exports)")
    return parser.parse_args(argv)


def _run_dirs(args: argparse.Namespace, storage: ConnectionManager) -> int:
    directories = DirectorySettings(storage)
    if args.dirs_command == "add":
        try:
            added = directories.add_dir(args.directory)
        except ValueError as exc:
            LOGGER.error("%s", exc)
            return 1
        print(("Added " if added else "Already listed: ") + args.directory)
        return 0
    if args.dirs_command == "remove":
        if not directories.remove_dir(args.directory):
            print(f"Not listed: {args.directory}")
            return 1
        print(f"Removed {args.directory}")
        return 0
    for name in directories.list_dirs():
        print(name)
    return 0


def _run_scan(args: argparse.Namespace, storage: ConnectionManager, settings: dict, working_dir: Path) -> int:
    scan_settings = ScanSettings.from_settings(settings)
    if args.workers:
        scan_settings.workers = max(1, int(args.workers))
    orchestrator = ScanOrchestrator(storage, settings=scan_settings, scan_logger=ScanLogger(working_dir))
    service = ScanService(orchestrator)
    try:
        service.scan_start()
    except ScanError as exc:
        LOGGER.error("%s", exc)
        return 1
    poll = max(0.1, float(args.poll))
    try:
        while not service.scan_join(timeout=poll):
            progress = service.scan_progress()
            print(
                "[{state}] queued={queued} running={running} completed={completed} failed={failed}".format(**progress),
                flush=True,
            )
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted; cancelling scan")
        service.scan_cancel()
        service.scan_join()
    summary = service.scan_progress()
    print(
        "Scan {generation} finished in {elapsed_ms} ms: {completed}/{queued} tasks, {failed} failed".format(**summary)
        + (" (cancelled)" if summary.get("cancelled") else "")
    )
    return 0


def _run_list(args: argparse.Namespace, storage: ConnectionManager) -> int:
    file_type = FileType(args.file_type) if args.file_type else None
    with storage.connection() as conn:
        total = count_records(conn, file_type=file_type)
        records = list_records(conn, file_type=file_type, limit=args.limit, offset=args.offset)
    for record in records:
        if args.json:
            print(json.dumps(record_to_dict(record), ensure_ascii=False))
            continue
        line = f"{record.file_type.value:<20} {record.path}"
        meta = record.metadata
        if meta is not None and not meta.is_empty:
            line += f"  [{meta.title} by {meta.author}, thing {meta.thing_id}]"
        print(line)
    if not args.json:
        print(f"{len(records)} of {total} record(s)")
    return 0


def _run_export(args: argparse.Namespace, storage: ConnectionManager, working_dir: Path) -> int:
    target = expand_user_path(args.output) if args.output else get_exports_dir(working_dir)
    file_type = FileType(args.file_type) if args.file_type else None
    paths = export_catalog(storage, target, format=args.format, file_type=file_type)
    for path in paths:
        LOGGER.info("Wrote %s", path)
        print(path)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_console_logging(args.verbose)
    working_dir = expand_user_path(args.working_dir) if args.working_dir else resolve_working_dir()
    ensure_working_dir_structure(working_dir)
    configure_json_logging(working_dir)
    settings = load_settings(working_dir)

    try:
        storage = open_storage(settings, working_dir)
    except StorageError as exc:
        LOGGER.error("%s", exc)
        return 2
    try:
        applied = storage.migrate()
        if args.command == "migrate":
            print(f"Applied {len(applied)} migration(s) to {storage.describe()}")
            return 0
        if args.command == "dirs":
            return _run_dirs(args, storage)
        if args.command == "scan":
            return _run_scan(args, storage, settings, working_dir)
        if args.command == "list":
            return _run_list(args, storage)
        if args.command == "export":
            return _run_export(args, storage, working_dir)
    except MigrationError as exc:
        LOGGER.error("Catalog schema migration failed: %s", exc)
        return 2
    except StorageError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        storage.close()
    return 1


if __name__ == "__main__":
    sys.exit(main())
