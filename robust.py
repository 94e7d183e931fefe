"""Helpers for resilient filesystem enumeration on large trees and network shares."""

from __future__ import annotations

import errno
import os
import threading
from fnmatch import fnmatch
from typing import Optional, Sequence, Tuple

_TRANSIENT_ERRNOS = {
    errno.ESTALE,
    errno.ETIMEDOUT,
    errno.EIO,
    errno.ECONNRESET,
    errno.ECONNABORTED,
    errno.ENETRESET,
    errno.ENETDOWN,
    errno.ENETUNREACH,
}


def is_hidden(entry: os.DirEntry) -> bool:
    return entry.name.startswith(".")


def is_transient(exc: OSError) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    return getattr(exc, "errno", None) in _TRANSIENT_ERRNOS


def should_ignore(path: str, *, patterns: Sequence[str]) -> bool:
    if not patterns:
        return False
    name = os.path.basename(path)
    for pattern in patterns:
        if fnmatch(name, pattern) or fnmatch(path, pattern):
            return True
    return False


def directory_key(path: str) -> Optional[Tuple[int, int]]:
    """Return ``(st_dev, st_ino)`` for *path* following symlinks, or ``None``."""

    try:
        stat_result = os.stat(path)
    except OSError:
        return None
    return stat_result.st_dev, stat_result.st_ino


class CancellationToken:
    def __init__(self) -> None:
        self._evt = threading.Event()

    def set(self) -> None:
        self._evt.set()

    def is_set(self) -> bool:
        return self._evt.is_set()


__all__ = [
    "CancellationToken",
    "directory_key",
    "is_hidden",
    "is_transient",
    "should_ignore",
]
