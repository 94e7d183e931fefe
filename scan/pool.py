"""Task queue and bounded worker pool used by the scan orchestrator."""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterable, List, Optional

from robust import CancellationToken

from .progress import ProgressTracker
from .types import ScanTask

LOGGER = logging.getLogger("stlcatalog.scan.pool")

TaskHandler = Callable[[ScanTask], bool]

_SENTINEL = object()
_WORKER_LOCAL = threading.local()


class TaskQueue:
    """FIFO of scan tasks.

    Tasks are counted into the tracker before they become visible to workers,
    so ``queued`` can never lag behind a task that is already running.
    """

    def __init__(self, tracker: ProgressTracker) -> None:
        self._tracker = tracker
        self._queue: "queue.Queue[object]" = queue.Queue()

    def put(self, task: ScanTask) -> None:
        self.put_many((task,))

    def put_many(self, tasks: Iterable[ScanTask]) -> int:
        batch = list(tasks)
        if not batch:
            return 0
        self._tracker.add_queued(len(batch))
        for task in batch:
            self._queue.put(task)
        return len(batch)

    def get(self) -> object:
        return self._queue.get()

    def close(self, workers: int) -> None:
        for _ in range(workers):
            self._queue.put(_SENTINEL)


class WorkerPool:
    """Run queued tasks on a fixed number of threads.

    ``on_empty`` fires on the worker that completes the last outstanding
    task; ``on_exit`` fires once every worker thread has stopped.
    """

    def __init__(
        self,
        task_queue: TaskQueue,
        tracker: ProgressTracker,
        handler: TaskHandler,
        *,
        workers: int,
        cancel_token: CancellationToken,
        on_empty: Callable[[], None],
        on_exit: Callable[[], None],
        name: str = "scan-worker",
    ) -> None:
        self._queue = task_queue
        self._tracker = tracker
        self._handler = handler
        self._workers = max(1, int(workers))
        self._cancel = cancel_token
        self._on_empty = on_empty
        self._on_exit = on_exit
        self._name = name
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._alive = 0
        self._stopping = False

    @staticmethod
    def current() -> Optional["WorkerPool"]:
        """Return the pool owning the calling thread, if it is a worker."""

        return getattr(_WORKER_LOCAL, "pool", None)

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            self._alive = self._workers
            for idx in range(self._workers):
                thread = threading.Thread(target=self._worker, name=f"{self._name}-{idx + 1}")
                thread.daemon = True
                self._threads.append(thread)
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Ask every worker to exit once the queue is drained. Never blocks."""

        with self._lock:
            if self._stopping:
                return
            self._stopping = True
        self._queue.close(self._workers)

    # ------------------------------------------------------------------
    def _worker(self) -> None:
        _WORKER_LOCAL.pool = self
        try:
            while True:
                item = self._queue.get()
                if item is _SENTINEL:
                    break
                self._run(item)  # type: ignore[arg-type]
        finally:
            _WORKER_LOCAL.pool = None
            with self._lock:
                self._alive -= 1
                last = self._alive == 0
            if last:
                self._on_exit()

    def _run(self, task: ScanTask) -> None:
        self._tracker.mark_running(task)
        failed = False
        try:
            if not self._cancel.is_set():
                failed = not self._handler(task)
        except Exception:
            LOGGER.exception("Scan task failed: %r", task)
            failed = True
        finally:
            remaining = self._tracker.mark_completed(task, failed=failed)
        if remaining == 0:
            self._on_empty()


__all__ = ["TaskHandler", "TaskQueue", "WorkerPool"]
