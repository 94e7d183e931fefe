"""Tests for core.settings helpers."""

from __future__ import annotations

import json
from pathlib import Path

from core.settings import SETTINGS_VERSION, load_settings, merge_defaults, save_settings
from scan.types import ScanSettings


def test_merge_defaults_includes_scan_block() -> None:
    merged = merge_defaults({})

    assert merged["version"] == SETTINGS_VERSION
    assert merged["scan"]["workers"] == 4
    assert merged["scan"]["skip_hidden"] is False
    assert merged["scan"]["include_loose_media"] is False
    assert merged["catalog"]["write_attempts"] == 5
    assert merged["storage"]["backend"] == "file"
    assert merged["api"]["api_key"] is None


def test_partial_settings_keep_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"scan": {"workers": 8, "ignore": ["*.tmp"]}}), encoding="utf-8")

    loaded = load_settings(tmp_path)

    assert loaded["scan"]["workers"] == 8
    assert loaded["scan"]["ignore"] == ["*.tmp"]
    assert loaded["scan"]["follow_symlinks"] is False
    assert loaded["catalog"]["retry_delay_s"] == 0.05
    assert loaded["working_dir"] == str(tmp_path)

    scan_settings = ScanSettings.from_settings(loaded)
    assert scan_settings.workers == 8
    assert scan_settings.ignore == ("*.tmp",)
    assert scan_settings.write_attempts == 5


def test_save_settings_upgrades_version(tmp_path: Path) -> None:
    save_settings({"version": 0, "storage": {"backend": "memory"}}, tmp_path)

    saved = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))

    assert saved["version"] == SETTINGS_VERSION
    assert saved["storage"]["backend"] == "memory"
    assert saved["storage"]["memory_name"] == "stlcatalog"


def test_unknown_keys_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"scan": {"wrokers": 2}, "gui": {}}), encoding="utf-8")

    load_settings(tmp_path)

    report = json.loads((tmp_path / "logs" / "settings_unknown.json").read_text(encoding="utf-8"))
    assert report["unknown"] == ["gui", "scan.wrokers"]


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    loaded = load_settings(tmp_path)

    assert loaded["scan"]["workers"] == 4
