"""Scan generations: seed directory walks, fan out, drain, archive."""
from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
import uuid
from typing import List, Optional, Set, Tuple

from catalog.store import record_scan_run
from catalog.writer import CatalogError, CatalogWriter
from core.db import transaction
from core.paths import canonical_path, expand_user_path
from library.directories import DirectorySettings
from robust import CancellationToken, directory_key, is_hidden, is_transient, should_ignore
from storage.errors import StorageError
from storage.manager import ConnectionManager

from .classify import classify, inspect_archive, needs_inspection
from .errors import AlreadyRunning, NoDirectories, ScanError
from .logs import ScanLogger
from .pool import TaskQueue, WorkerPool
from .progress import ProgressTracker
from .types import (
    ClassifyEntry,
    DirectoryWalk,
    FileRecord,
    InspectArchive,
    PersistRecord,
    ScanProgress,
    ScanSettings,
    ScanState,
    ScanTask,
)

LOGGER = logging.getLogger("stlcatalog.scan")


class _Generation:
    """Per-generation state; discarded once the generation is finalised."""

    def __init__(self, generation: str, workers: int) -> None:
        self.generation = generation
        self.tracker = ProgressTracker(generation)
        self.queue = TaskQueue(self.tracker)
        self.cancel = CancellationToken()
        self.workers = workers
        self.pool: Optional[WorkerPool] = None
        self.lock = threading.Lock()
        self.visited: Set[Tuple[int, int]] = set()
        self.records = 0

    def first_visit(self, path: str) -> bool:
        key = directory_key(path)
        if key is None:
            return True
        with self.lock:
            if key in self.visited:
                return False
            self.visited.add(key)
            return True

    def count_record(self) -> None:
        with self.lock:
            self.records += 1


class ScanOrchestrator:
    """Drive scan generations over the configured directories.

    One generation runs at a time. ``start`` returns as soon as the worker
    pool is running; ``progress`` and ``join`` observe it from any thread.
    """

    def __init__(
        self,
        storage: ConnectionManager,
        directories: Optional[DirectorySettings] = None,
        *,
        settings: Optional[ScanSettings] = None,
        writer: Optional[CatalogWriter] = None,
        scan_logger: Optional[ScanLogger] = None,
    ) -> None:
        self._storage = storage
        self._directories = directories or DirectorySettings(storage)
        self._settings = settings or ScanSettings()
        self._writer = writer or CatalogWriter(storage)
        self._events = scan_logger or ScanLogger()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._tracker = ProgressTracker()
        self._current: Optional[_Generation] = None

    @property
    def settings(self) -> ScanSettings:
        return self._settings

    @property
    def state(self) -> ScanState:
        return self._tracker.snapshot().state

    # ------------------------------------------------------------------
    def start(self) -> str:
        """Begin a new generation and return its token."""

        with self._lock:
            if not self._idle.is_set():
                raise AlreadyRunning(self._tracker.generation)
            directories = self._directories.list_dirs()
            if not directories:
                raise NoDirectories()
            gen = _Generation(uuid.uuid4().hex, self._settings.workers)
            roots = self._resolve_roots(gen.generation, directories)
            self._current = gen
            self._tracker = gen.tracker
            self._idle.clear()
            gen.tracker.set_state(ScanState.RUNNING)
            self._events.generation(gen.generation, "started", directories=len(directories), roots=len(roots))
            if not roots:
                finish_now = True
            else:
                finish_now = False
                gen.pool = WorkerPool(
                    gen.queue,
                    gen.tracker,
                    lambda task: self._handle(gen, task),
                    workers=gen.workers,
                    cancel_token=gen.cancel,
                    on_empty=lambda: self._drain(gen),
                    on_exit=lambda: self._finalize(gen),
                )
                gen.queue.put_many(DirectoryWalk(root, gen.generation) for root in roots)
                gen.pool.start()
        if finish_now:
            self._finalize(gen)
        return gen.generation

    def progress(self) -> ScanProgress:
        return self._tracker.snapshot()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until the orchestrator is idle; ``False`` on timeout."""

        if WorkerPool.current() is not None:
            raise ScanError("join() cannot be called from a scan worker")
        return self._idle.wait(timeout)

    def cancel(self) -> bool:
        """Skip the remaining tasks of the running generation."""

        gen = self._current
        if gen is None or self._idle.is_set():
            return False
        gen.cancel.set()
        gen.tracker.mark_cancelled()
        self._events.generation(gen.generation, "cancel_requested")
        return True

    # ------------------------------------------------------------------
    def _resolve_roots(self, generation: str, directories: List[str]) -> List[str]:
        roots: List[str] = []
        seen: Set[str] = set()
        for name in directories:
            path = expand_user_path(name)
            try:
                is_dir = path.is_dir()
            except OSError as exc:
                self._events.skipped(
                    generation,
                    str(path),
                    "unreadable_directory",
                    err_msg=str(exc),
                    transient=is_transient(exc),
                )
                continue
            if not is_dir:
                self._events.skipped(generation, str(path), "missing_directory")
                continue
            root = canonical_path(str(path))
            if root in seen:
                continue
            seen.add(root)
            roots.append(root)
        return roots

    def _handle(self, gen: _Generation, task: ScanTask) -> bool:
        if isinstance(task, DirectoryWalk):
            return self._walk(gen, task)
        if isinstance(task, ClassifyEntry):
            return self._classify(gen, task)
        if isinstance(task, InspectArchive):
            record = inspect_archive(
                task.path,
                readme_max_bytes=self._settings.readme_max_bytes,
                generation=gen.generation,
            )
            return self._persist(gen, record) if record is not None else True
        if isinstance(task, PersistRecord):
            delay = self._settings.retry_delay_s * (task.attempt - 1)
            if delay > 0:
                time.sleep(delay)
            return self._persist(gen, task.record, attempt=task.attempt)
        raise TypeError(f"unknown scan task: {task!r}")

    def _walk(self, gen: _Generation, task: DirectoryWalk) -> bool:
        settings = self._settings
        if settings.follow_symlinks and not gen.first_visit(task.path):
            self._events.skipped(gen.generation, task.path, "directory_cycle")
            return True
        children: List[ScanTask] = []
        ok = True
        try:
            with os.scandir(task.path) as entries:
                for entry in entries:
                    if settings.skip_hidden and is_hidden(entry):
                        continue
                    if settings.ignore and should_ignore(entry.path, patterns=settings.ignore):
                        continue
                    child = self._child_task(gen, entry)
                    if child is not None:
                        children.append(child)
        except OSError as exc:
            ok = False
            self._events.skipped(
                gen.generation,
                task.path,
                "unlistable",
                err=type(exc).__name__,
                err_msg=str(exc),
                transient=is_transient(exc),
            )
        gen.queue.put_many(children)
        return ok

    def _child_task(self, gen: _Generation, entry: os.DirEntry) -> Optional[ScanTask]:
        try:
            if entry.is_symlink():
                if entry.is_dir():
                    if not self._settings.follow_symlinks:
                        return None
                    return DirectoryWalk(entry.path, gen.generation)
                if entry.is_file():
                    return ClassifyEntry(entry.path, gen.generation)
                return None
            if entry.is_dir(follow_symlinks=False):
                return DirectoryWalk(entry.path, gen.generation)
            if entry.is_file(follow_symlinks=False):
                return ClassifyEntry(entry.path, gen.generation)
        except OSError as exc:
            self._events.skipped(gen.generation, entry.path, "unreadable_entry", err_msg=str(exc))
        return None

    def _classify(self, gen: _Generation, task: ClassifyEntry) -> bool:
        if needs_inspection(task.path):
            gen.queue.put(InspectArchive(task.path, gen.generation))
            return True
        record = classify(
            task.path,
            include_loose_media=self._settings.include_loose_media,
            readme_max_bytes=self._settings.readme_max_bytes,
            generation=gen.generation,
        )
        if record is None:
            return True
        return self._persist(gen, record)

    def _persist(self, gen: _Generation, record: FileRecord, *, attempt: int = 1) -> bool:
        try:
            self._writer.record(record)
        except CatalogError as exc:
            final = attempt >= self._settings.write_attempts
            self._events.write_failed(gen.generation, record.path, attempt, exc, final=final)
            if final:
                return False
            gen.queue.put(PersistRecord(record, gen.generation, attempt + 1))
            return True
        gen.count_record()
        return True

    # ------------------------------------------------------------------
    def _drain(self, gen: _Generation) -> None:
        gen.tracker.set_state(ScanState.DRAINING)
        if gen.pool is not None:
            gen.pool.stop()

    def _finalize(self, gen: _Generation) -> None:
        snapshot = gen.tracker.finish()
        try:
            with self._storage.connection() as conn:
                with transaction(conn):
                    record_scan_run(
                        conn,
                        generation=gen.generation,
                        start_time=snapshot.start_time,
                        end_time=snapshot.end_time,
                        queued=snapshot.queued,
                        completed=snapshot.completed,
                        failed=snapshot.failed,
                        records=gen.records,
                        cancelled=snapshot.cancelled,
                    )
        except (sqlite3.Error, StorageError) as exc:
            LOGGER.error("Cannot archive scan run %s: %s", gen.generation, exc)
        self._events.generation(
            gen.generation,
            "finished",
            queued=snapshot.queued,
            completed=snapshot.completed,
            failed=snapshot.failed,
            records=gen.records,
            cancelled=snapshot.cancelled,
            elapsed_ms=snapshot.elapsed_ms,
        )
        with self._lock:
            self._idle.set()


__all__ = ["ScanOrchestrator"]
