import os

from conftest import write_thing_zip, write_zip
from scan.classify import classify, inspect_archive, member_type, parse_thing_title
from scan.types import FileType, ThingMetadata


def test_stl_file_is_classified_at_canonical_path(tmp_path):
    model = tmp_path / "Cube.STL"
    model.write_bytes(b"solid cube\nendsolid cube\n")

    record = classify(str(tmp_path / "." / "Cube.STL"), generation="g1")

    assert record is not None
    assert record.file_type is FileType.STL
    assert record.path == os.path.realpath(model)
    assert record.size_bytes == model.stat().st_size
    assert record.metadata is None
    assert record.generation == "g1"


def test_unrecognised_and_extensionless_files_are_skipped(tmp_path):
    (tmp_path / "icon.ico").write_bytes(b"\x00\x00\x01\x00")
    (tmp_path / "Makefile").write_text("all:\n", encoding="utf-8")

    assert classify(str(tmp_path / "icon.ico")) is None
    assert classify(str(tmp_path / "Makefile")) is None


def test_directories_and_missing_paths_are_skipped(tmp_path):
    folder = tmp_path / "models.stl"
    folder.mkdir()

    assert classify(str(folder)) is None
    assert classify(str(tmp_path / "gone.stl")) is None


def test_loose_media_requires_opt_in(tmp_path):
    (tmp_path / "preview.png").write_bytes(b"\x89PNG")
    (tmp_path / "README.md").write_text("# hello\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("notes\n", encoding="utf-8")

    assert classify(str(tmp_path / "preview.png")) is None
    assert classify(str(tmp_path / "README.md")) is None

    image = classify(str(tmp_path / "preview.png"), include_loose_media=True)
    readme = classify(str(tmp_path / "README.md"), include_loose_media=True)
    assert image is not None and image.file_type is FileType.IMAGE
    assert readme is not None and readme.file_type is FileType.README
    assert classify(str(tmp_path / "notes.txt"), include_loose_media=True) is None


def test_thingiverse_archive_metadata(tmp_path):
    archive = write_thing_zip(tmp_path / "benchy.zip")

    record = classify(str(archive))

    assert record is not None
    assert record.file_type is FileType.THINGIVERSE_ARCHIVE
    assert record.metadata == ThingMetadata(title="Benchy", author="Makerbot", thing_id="763622")
    assert record.model_count == 2
    assert record.image_count == 1


def test_thingiverse_layout_with_unparseable_readme(tmp_path):
    archive = write_thing_zip(tmp_path / "thing.zip", readme="Downloaded from somewhere\n")

    record = inspect_archive(str(archive))

    assert record is not None
    assert record.file_type is FileType.THINGIVERSE_ARCHIVE
    assert record.metadata is not None
    assert record.metadata.is_empty


def test_readme_with_bom_and_uppercase_extension(tmp_path):
    archive = write_zip(
        tmp_path / "BENCHY.ZIP",
        {
            "files/a.stl": b"solid a\n",
            "images/a.png": b"\x89PNG",
            "README.txt": "\ufeffBenchy by Makerbot on Thingiverse: https://www.thingiverse.com/thing:763622\r\n".encode("utf-8"),
        },
    )

    record = classify(str(archive))

    assert record is not None
    assert record.metadata is not None
    assert record.metadata.thing_id == "763622"


def test_archive_without_layout_is_other(tmp_path):
    archive = write_zip(tmp_path / "parts.zip", {"part.stl": b"solid p\n", "docs/info.txt": b"x"})

    record = classify(str(archive))

    assert record is not None
    assert record.file_type is FileType.OTHER_ARCHIVE
    assert record.metadata is None
    assert record.model_count == 1


def test_missing_readme_is_other_archive(tmp_path):
    archive = write_thing_zip(tmp_path / "noreadme.zip", readme=None)

    record = classify(str(archive))

    assert record is not None
    assert record.file_type is FileType.OTHER_ARCHIVE


def test_corrupt_archive_is_skipped(tmp_path):
    bad = tmp_path / "broken.zip"
    bad.write_bytes(b"this is not a zip archive")

    assert classify(str(bad)) is None


def test_parse_thing_title():
    meta = parse_thing_title("Gear by Bob by Alice on Thingiverse: http://thingiverse.com/thing:42")
    assert meta == ThingMetadata(title="Gear by Bob", author="Alice", thing_id="42")
    assert parse_thing_title("Gear by Alice") is None
    assert parse_thing_title("") is None


def test_member_type():
    assert member_type("files/part.STL") is FileType.STL
    assert member_type("images/shot.JPEG") is FileType.IMAGE
    assert member_type("readme.md") is FileType.README
    assert member_type("license.txt") is None
    assert member_type("files/") is None
