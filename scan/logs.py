"""Structured JSONL event log for scan generations."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from core.paths import get_logs_dir

LOGGER = logging.getLogger("stlcatalog.scan.events")


class ScanLogger:
    """Append scan events to ``logs/scan.jsonl`` and mirror them to ``logging``.

    Without a working directory events only go to the stdlib logger.
    """

    def __init__(self, working_dir: Optional[Path] = None) -> None:
        self._log_path: Optional[Path] = None
        if working_dir is not None:
            self._log_path = get_logs_dir(Path(working_dir)) / "scan.jsonl"
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def log_path(self) -> Optional[Path]:
        return self._log_path

    # ------------------------------------------------------------------
    def _write(self, payload: Dict[str, Any], *, level: int) -> None:
        payload.setdefault("ts", datetime.now(timezone.utc).isoformat())
        line = json.dumps(payload, sort_keys=True, default=str)
        if self._log_path is not None:
            with self._lock:
                try:
                    with self._log_path.open("a", encoding="utf-8") as handle:
                        handle.write(line + "\n")
                except OSError as exc:
                    LOGGER.error("Cannot append to %s: %s", self._log_path, exc)
        LOGGER.log(level, "%s", line)

    def generation(self, generation: str, phase: str, **data: Any) -> None:
        self._write({"event": "generation", "generation": generation, "phase": phase, "ok": True, **data}, level=logging.INFO)

    def skipped(self, generation: str, path: str, reason: str, **data: Any) -> None:
        self._write(
            {"event": "skipped", "generation": generation, "path": path, "reason": reason, "ok": False, **data},
            level=logging.WARNING,
        )

    def write_failed(self, generation: str, path: str, attempt: int, err: Exception, *, final: bool) -> None:
        self._write(
            {
                "event": "catalog_write",
                "generation": generation,
                "path": path,
                "attempt": attempt,
                "final": final,
                "err": type(err).__name__,
                "err_msg": str(err),
                "ok": False,
            },
            level=logging.ERROR if final else logging.WARNING,
        )


__all__ = ["ScanLogger"]
