from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from storage.manager import FileConnectionManager

BENCHY_README = "Benchy by Makerbot on Thingiverse: https://www.thingiverse.com/thing:763622\n\nSummary:\nA boat.\n"


def write_zip(path: Path, members: Dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, payload in members.items():
            archive.writestr(name, payload)
    return path


def write_thing_zip(path: Path, readme: Optional[str] = BENCHY_README) -> Path:
    members = {
        "files/3DBenchy.stl": b"solid benchy\nendsolid benchy\n",
        "files/3DBenchy_hull.STL": b"solid hull\nendsolid hull\n",
        "images/benchy.jpg": b"\xff\xd8\xff",
    }
    if readme is not None:
        members["README.txt"] = readme.encode("utf-8")
    return write_zip(path, members)


@pytest.fixture
def storage(tmp_path: Path):
    manager = FileConnectionManager(tmp_path / "data" / "catalog.db")
    manager.migrate()
    yield manager
    manager.close()
