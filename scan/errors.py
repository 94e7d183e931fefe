"""Error hierarchy for scan orchestration."""
from __future__ import annotations


class ScanError(RuntimeError):
    """Base exception for orchestration-level misuse."""

    code = "SCAN_ERROR"


class AlreadyRunning(ScanError):
    """Raised by ``start()`` while a generation is still in flight."""

    code = "ALREADY_RUNNING"

    def __init__(self, generation: str | None = None) -> None:
        super().__init__("scan already in progress")
        self.generation = generation


class NoDirectories(ScanError):
    """Raised by ``start()`` when no directory is configured."""

    code = "NO_DIRECTORIES"

    def __init__(self) -> None:
        super().__init__("no directories configured")


__all__ = ["AlreadyRunning", "NoDirectories", "ScanError"]
