import json
import os

import stlcatalog
from conftest import write_thing_zip


def _run(home, *argv):
    return stlcatalog.main(["--working-dir", str(home), *argv])


def test_cli_scan_list_export(tmp_path, capsys):
    home = tmp_path / "home"
    root = tmp_path / "prints"
    root.mkdir()
    (root / "cube.stl").write_bytes(b"solid cube\n")
    write_thing_zip(root / "benchy.zip")

    assert _run(home, "migrate") == 0
    assert _run(home, "dirs", "add", str(root)) == 0
    assert _run(home, "dirs", "add", str(root)) == 0
    capsys.readouterr()
    assert _run(home, "dirs", "list") == 0
    assert capsys.readouterr().out.splitlines() == [str(root)]

    assert _run(home, "scan", "--poll", "0.1") == 0
    assert "finished" in capsys.readouterr().out

    assert _run(home, "list", "--json") == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert {row["path"]: row["file_type"] for row in rows} == {
        os.path.realpath(root / "benchy.zip"): "thingiverse_archive",
        os.path.realpath(root / "cube.stl"): "stl",
    }

    assert _run(home, "export", "--format", "csv") == 0
    exported = capsys.readouterr().out.strip().splitlines()
    assert len(exported) == 1
    assert exported[0].endswith("file_records.csv")
    assert os.path.isfile(exported[0])
    assert (home / "logs" / "scan.jsonl").is_file()


def test_cli_scan_without_directories_fails(tmp_path):
    assert _run(tmp_path / "home", "scan") == 1


def test_cli_remove_unknown_directory(tmp_path):
    assert _run(tmp_path / "home", "dirs", "remove", "/not/listed") == 1
