import pytest

from library.directories import DirectorySettings


def test_directories_are_listed_alphabetically(storage):
    directories = DirectorySettings(storage)

    directories.add_dir("/prints/zeta")
    directories.add_dir("/prints/alpha")
    directories.add_dir("~/models")

    assert directories.list_dirs() == ["/prints/alpha", "/prints/zeta", "~/models"]


def test_add_dir_is_idempotent(storage):
    directories = DirectorySettings(storage)

    assert directories.add_dir("/prints") is True
    assert directories.add_dir("/prints") is False
    assert directories.add_dir("  /prints  ") is False
    assert directories.list_dirs() == ["/prints"]


def test_blank_directory_is_rejected(storage):
    directories = DirectorySettings(storage)

    with pytest.raises(ValueError):
        directories.add_dir("   ")
    assert directories.list_dirs() == []


def test_remove_and_clear(storage):
    directories = DirectorySettings(storage)
    directories.add_dir("/a")
    directories.add_dir("/b")

    assert directories.remove_dir("/a") is True
    assert directories.remove_dir("/a") is False
    assert directories.list_dirs() == ["/b"]

    directories.clear_dirs()
    assert directories.list_dirs() == []
