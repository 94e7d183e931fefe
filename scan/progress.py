"""Thread-safe progress counters for one scan generation."""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Set

from .types import ScanProgress, ScanState, ScanTask


class ProgressTracker:
    """Count queued, running and completed tasks of a generation.

    ``queued`` counts every task ever created, so it only grows. A task moves
    queued -> running -> completed exactly once. The lock is held only for the
    counter arithmetic and the snapshot copy.
    """

    def __init__(self, generation: Optional[str] = None, *, clock: Callable[[], float] = time.time) -> None:
        self._generation = generation
        self._clock = clock
        self._lock = threading.Lock()
        self._queued = 0
        self._running = 0
        self._completed = 0
        self._failed = 0
        self._in_flight: Set[int] = set()
        self._state = ScanState.IDLE
        self._cancelled = False
        self._start_time: Optional[float] = clock() if generation else None
        self._end_time: Optional[float] = None

    @property
    def generation(self) -> Optional[str]:
        return self._generation

    @property
    def outstanding(self) -> int:
        with self._lock:
            return self._queued - self._completed

    # ------------------------------------------------------------------
    def add_queued(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError("queued count cannot decrease")
        with self._lock:
            self._queued += n

    def mark_running(self, task: ScanTask) -> None:
        key = id(task)
        with self._lock:
            if key in self._in_flight:
                raise ValueError(f"task already running: {task!r}")
            if self._running + self._completed >= self._queued:
                raise ValueError(f"task was never queued: {task!r}")
            self._in_flight.add(key)
            self._running += 1

    def mark_completed(self, task: ScanTask, *, failed: bool = False) -> int:
        """Complete *task* and return the number of tasks still outstanding."""

        key = id(task)
        with self._lock:
            if key not in self._in_flight:
                raise ValueError(f"task is not running: {task!r}")
            self._in_flight.discard(key)
            self._running -= 1
            self._completed += 1
            if failed:
                self._failed += 1
            return self._queued - self._completed

    # ------------------------------------------------------------------
    def set_state(self, state: ScanState) -> None:
        with self._lock:
            self._state = state

    def mark_cancelled(self) -> None:
        with self._lock:
            self._cancelled = True

    def finish(self) -> ScanProgress:
        with self._lock:
            if self._end_time is None:
                self._end_time = self._clock()
            self._state = ScanState.IDLE
        return self.snapshot()

    def snapshot(self) -> ScanProgress:
        with self._lock:
            start = self._start_time
            end = self._end_time
            elapsed_ms = 0
            if start is not None:
                elapsed_ms = max(0, int(((end if end is not None else self._clock()) - start) * 1000))
            return ScanProgress(
                generation=self._generation,
                state=self._state,
                queued=self._queued,
                running=self._running,
                completed=self._completed,
                failed=self._failed,
                start_time=start,
                end_time=end,
                elapsed_ms=elapsed_ms,
                cancelled=self._cancelled,
            )


__all__ = ["ProgressTracker"]
