"""Directory scanning: classification, progress and worker orchestration."""
from __future__ import annotations

from .errors import AlreadyRunning, NoDirectories, ScanError
from .types import (
    ClassifyEntry,
    DirectoryWalk,
    FileRecord,
    FileType,
    InspectArchive,
    PersistRecord,
    ScanProgress,
    ScanSettings,
    ScanState,
    ThingMetadata,
)

__all__ = [
    "AlreadyRunning",
    "ClassifyEntry",
    "DirectoryWalk",
    "FileRecord",
    "FileType",
    "InspectArchive",
    "NoDirectories",
    "PersistRecord",
    "ScanError",
    "ScanProgress",
    "ScanSettings",
    "ScanState",
    "ThingMetadata",
]
