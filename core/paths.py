from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "canonical_path",
    "ensure_working_dir_structure",
    "expand_user_path",
    "get_catalog_db_path",
    "get_data_dir",
    "get_default_settings_paths",
    "get_exports_dir",
    "get_logs_dir",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_HOME_ENV = "STLCATALOG_HOME"


def expand_user_path(value: str) -> Path:
    """Expand ``~`` and environment variables without touching the filesystem."""

    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded)


def canonical_path(path: str | os.PathLike[str]) -> str:
    """Return the canonical spelling of *path* (symlinks and ``..`` resolved)."""

    return os.path.realpath(os.fspath(path))


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    test_file = path / f".write_test_{os.getpid()}"
    try:
        with open(test_file, "w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True
    except OSError:
        try:
            if test_file.exists():
                test_file.unlink()
        except OSError:  # pragma: no cover - best-effort cleanup
            pass
        return False


def _prepare_working_dir(candidate: Path) -> Optional[Path]:
    if not _ensure_writable_dir(candidate):
        return None
    try:
        get_data_dir(candidate).mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    return candidate


def resolve_working_dir() -> Path:
    """Resolve the STL catalog working directory, creating it if required."""

    env_home = os.environ.get(_HOME_ENV)
    if env_home:
        prepared = _prepare_working_dir(expand_user_path(env_home).resolve())
        if prepared is not None:
            return prepared

    prepared = _prepare_working_dir(Path.home() / ".stlcatalog")
    if prepared is not None:
        return prepared

    fallback = _PROJECT_ROOT / ".stlcatalog"
    fallback.mkdir(parents=True, exist_ok=True)
    get_data_dir(fallback).mkdir(parents=True, exist_ok=True)
    return fallback


def get_data_dir(working_dir: Path) -> Path:
    return working_dir / "data"


def get_catalog_db_path(working_dir: Path) -> Path:
    return get_data_dir(working_dir) / "catalog.db"


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_exports_dir(working_dir: Path) -> Path:
    return working_dir / "exports"


def ensure_working_dir_structure(working_dir: Path) -> None:
    for directory in (
        working_dir,
        get_data_dir(working_dir),
        get_logs_dir(working_dir),
        get_exports_dir(working_dir),
    ):
        directory.mkdir(parents=True, exist_ok=True)


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
