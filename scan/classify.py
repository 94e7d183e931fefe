"""Classification of filesystem entries into catalog records.

Nothing here writes anywhere: the only I/O is ``stat`` on the entry and, for
zip archives, reading the central directory plus the first line of a
``README.txt`` member.
"""
from __future__ import annotations

import logging
import os
import re
import stat
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from core.paths import canonical_path

from .types import FileRecord, FileType, ThingMetadata

LOGGER = logging.getLogger("stlcatalog.scan.classify")

STL_EXTS = {".stl"}
ARCHIVE_EXTS = {".zip"}
IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}
README_EXTS = {".txt", ".md"}

THINGIVERSE_DIRS = ("files", "images")
THINGIVERSE_README = "readme.txt"
DEFAULT_README_MAX_BYTES = 4096

_THING_TITLE = re.compile(
    r"^\s*(?P<title>.+) by (?P<author>.+?) on Thingiverse:\s*"
    r"https?://(?:www\.)?thingiverse\.com/thing:(?P<thing_id>\d+)\s*$"
)

_ARCHIVE_ERRORS = (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, RuntimeError, ValueError, EOFError, NotImplementedError)


@dataclass(slots=True)
class ArchiveListing:
    """Top-level layout of a zip archive, derived from its member names."""

    top_dirs: Set[str]
    top_files: Dict[str, str]
    model_count: int = 0
    image_count: int = 0

    def is_thingiverse(self) -> bool:
        return all(name in self.top_dirs for name in THINGIVERSE_DIRS) and THINGIVERSE_README in self.top_files


def _extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def needs_inspection(path: str) -> bool:
    """True when *path* is an archive whose listing decides its type."""

    return _extension(os.path.basename(path)) in ARCHIVE_EXTS


def member_type(name: str) -> Optional[FileType]:
    """Type a file by name alone: models, preview images and readmes."""

    base = os.path.basename(name.replace("\\", "/").rstrip("/"))
    ext = _extension(base)
    if not ext:
        return None
    if ext in STL_EXTS:
        return FileType.STL
    if ext in IMAGE_EXTS:
        return FileType.IMAGE
    if ext in README_EXTS and base.lower().startswith("readme"):
        return FileType.README
    return None


def parse_thing_title(line: str) -> Optional[ThingMetadata]:
    """Parse ``"<title> by <author> on Thingiverse: <url>/thing:<id>"``."""

    match = _THING_TITLE.match(line or "")
    if not match:
        return None
    title = match.group("title").strip() or None
    author = match.group("author").strip() or None
    return ThingMetadata(title=title, author=author, thing_id=match.group("thing_id"))


def _regular_stat(path: str) -> Optional[os.stat_result]:
    try:
        result = os.stat(path)
    except OSError as exc:
        LOGGER.debug("Cannot stat %s: %s", path, exc)
        return None
    if not stat.S_ISREG(result.st_mode):
        return None
    return result


def _modified_utc(result: os.stat_result) -> str:
    return datetime.fromtimestamp(result.st_mtime, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def read_listing(archive: zipfile.ZipFile) -> ArchiveListing:
    listing = ArchiveListing(top_dirs=set(), top_files={})
    for info in archive.infolist():
        name = info.filename.replace("\\", "/").lstrip("/")
        if not name:
            continue
        head, sep, _rest = name.partition("/")
        if sep:
            listing.top_dirs.add(head.lower())
        else:
            listing.top_files[head.lower()] = info.filename
        if info.is_dir():
            continue
        kind = member_type(name)
        if kind is FileType.STL:
            listing.model_count += 1
        elif kind is FileType.IMAGE:
            listing.image_count += 1
    return listing


def _read_first_line(archive: zipfile.ZipFile, member: str, max_bytes: int) -> str:
    with archive.open(member) as handle:
        raw = handle.read(max_bytes)
    text = raw.decode("utf-8-sig", errors="replace")
    lines = text.splitlines()
    return lines[0] if lines else ""


def inspect_archive(
    path: str,
    *,
    readme_max_bytes: int = DEFAULT_README_MAX_BYTES,
    generation: Optional[str] = None,
) -> Optional[FileRecord]:
    """Classify a zip archive as a Thingiverse download or another archive.

    A corrupt or unreadable archive yields ``None``; the error is logged and
    never raised.
    """

    canonical = canonical_path(path)
    result = _regular_stat(canonical)
    if result is None:
        return None
    try:
        with zipfile.ZipFile(canonical) as archive:
            listing = read_listing(archive)
            metadata: Optional[ThingMetadata] = None
            if listing.is_thingiverse():
                readme = listing.top_files[THINGIVERSE_README]
                line = _read_first_line(archive, readme, readme_max_bytes)
                metadata = parse_thing_title(line) or ThingMetadata()
    except _ARCHIVE_ERRORS as exc:
        LOGGER.warning("Unreadable archive %s: %s", canonical, exc)
        return None
    file_type = FileType.THINGIVERSE_ARCHIVE if metadata is not None else FileType.OTHER_ARCHIVE
    return FileRecord(
        path=canonical,
        file_type=file_type,
        metadata=metadata,
        size_bytes=int(result.st_size),
        modified_utc=_modified_utc(result),
        model_count=listing.model_count,
        image_count=listing.image_count,
        generation=generation,
    )


def classify(
    path: str,
    *,
    include_loose_media: bool = False,
    readme_max_bytes: int = DEFAULT_README_MAX_BYTES,
    generation: Optional[str] = None,
) -> Optional[FileRecord]:
    """Map a filesystem entry to a :class:`FileRecord`, or ``None`` to skip it."""

    canonical = canonical_path(path)
    result = _regular_stat(canonical)
    if result is None:
        return None
    name = os.path.basename(canonical)
    if not _extension(name):
        return None
    if needs_inspection(name):
        return inspect_archive(canonical, readme_max_bytes=readme_max_bytes, generation=generation)
    kind = member_type(name)
    if kind is None:
        return None
    if kind is not FileType.STL and not include_loose_media:
        return None
    return FileRecord(
        path=canonical,
        file_type=kind,
        size_bytes=int(result.st_size),
        modified_utc=_modified_utc(result),
        generation=generation,
    )


__all__ = [
    "ArchiveListing",
    "classify",
    "inspect_archive",
    "member_type",
    "needs_inspection",
    "parse_thing_title",
    "read_listing",
]
