"""Value types shared by the scan engine."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union


class FileType(str, enum.Enum):
    STL = "stl"
    THINGIVERSE_ARCHIVE = "thingiverse_archive"
    OTHER_ARCHIVE = "other_archive"
    IMAGE = "image"
    README = "readme"


class ScanState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"


@dataclass(frozen=True, slots=True)
class ThingMetadata:
    """Attribution parsed from a Thingiverse README title line."""

    title: Optional[str] = None
    author: Optional[str] = None
    thing_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.author is None and self.thing_id is None


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A classified file, keyed by its canonical path."""

    path: str
    file_type: FileType
    metadata: Optional[ThingMetadata] = None
    size_bytes: Optional[int] = None
    modified_utc: Optional[str] = None
    model_count: Optional[int] = None
    image_count: Optional[int] = None
    generation: Optional[str] = None


# ----------------------------------------------------------------------
# Scan tasks. Each task owns its data and belongs to exactly one generation.
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DirectoryWalk:
    path: str
    generation: str


@dataclass(frozen=True, slots=True)
class ClassifyEntry:
    path: str
    generation: str


@dataclass(frozen=True, slots=True)
class InspectArchive:
    path: str
    generation: str


@dataclass(frozen=True, slots=True)
class PersistRecord:
    record: FileRecord
    generation: str
    attempt: int = 1


ScanTask = Union[DirectoryWalk, ClassifyEntry, InspectArchive, PersistRecord]


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """Point-in-time view of a generation's counters."""

    generation: Optional[str] = None
    state: ScanState = ScanState.IDLE
    queued: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    elapsed_ms: int = 0
    cancelled: bool = False

    def as_dict(self) -> dict:
        return {
            "generation": self.generation,
            "state": self.state.value,
            "queued": self.queued,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "elapsed_ms": self.elapsed_ms,
            "cancelled": self.cancelled,
        }


@dataclass(slots=True)
class ScanSettings:
    workers: int = 4
    skip_hidden: bool = False
    follow_symlinks: bool = False
    ignore: tuple = field(default_factory=tuple)
    include_loose_media: bool = False
    readme_max_bytes: int = 4096
    write_attempts: int = 5
    retry_delay_s: float = 0.05

    @classmethod
    def from_settings(cls, settings: Optional[dict]) -> "ScanSettings":
        payload = dict(settings or {})
        scan_cfg = payload.get("scan") if isinstance(payload.get("scan"), dict) else {}
        catalog_cfg = payload.get("catalog") if isinstance(payload.get("catalog"), dict) else {}
        defaults = cls()
        ignore = scan_cfg.get("ignore") or ()
        if isinstance(ignore, str):
            ignore = (ignore,)
        return cls(
            workers=max(1, int(scan_cfg.get("workers", defaults.workers))),
            skip_hidden=bool(scan_cfg.get("skip_hidden", defaults.skip_hidden)),
            follow_symlinks=bool(scan_cfg.get("follow_symlinks", defaults.follow_symlinks)),
            ignore=tuple(str(p).strip() for p in ignore if str(p).strip()),
            include_loose_media=bool(scan_cfg.get("include_loose_media", defaults.include_loose_media)),
            readme_max_bytes=max(256, int(scan_cfg.get("readme_max_bytes", defaults.readme_max_bytes))),
            write_attempts=max(1, int(catalog_cfg.get("write_attempts", defaults.write_attempts))),
            retry_delay_s=max(0.0, float(catalog_cfg.get("retry_delay_s", defaults.retry_delay_s))),
        )


__all__ = [
    "ClassifyEntry",
    "DirectoryWalk",
    "FileRecord",
    "FileType",
    "InspectArchive",
    "PersistRecord",
    "ScanProgress",
    "ScanSettings",
    "ScanState",
    "ScanTask",
    "ThingMetadata",
]
