"""Tests for the file and exec models."""

import pytest

from podfs.models.exec import CommandResult
from podfs.models.files import FileEntry, FileKind, UnixPex


def test_symlink_entry_requires_target():
    with pytest.raises(ValueError):
        FileEntry("/tmp/link", FileKind.SYMLINK)


@pytest.mark.parametrize("kind", [FileKind.FILE, FileKind.DIRECTORY])
def test_only_symlinks_carry_a_target(kind):
    with pytest.raises(ValueError):
        FileEntry("/tmp/a", kind, symlink="/etc/hosts")


def test_symlink_entry():
    entry = FileEntry("/tmp/link", FileKind.SYMLINK, symlink="/etc/hosts")
    assert entry.name == "link"
    assert not entry.is_dir


def test_with_path_keeps_attributes():
    entry = FileEntry("/tmp/a.txt", FileKind.FILE, mode=UnixPex(6, 4, 4), size=3)
    moved = entry.with_path("/web/app/tmp/a.txt")
    assert moved.path == "/web/app/tmp/a.txt"
    assert (moved.mode, moved.size) == (entry.mode, entry.size)


def test_directory_root_name():
    assert FileEntry.directory("/").name == "/"


def test_unix_pex():
    assert str(UnixPex.from_mode(0o750)) == "750"
    assert UnixPex(7, 5, 5).to_mode() == 0o755
    with pytest.raises(ValueError):
        UnixPex(8, 0, 0)


def test_command_result_ok():
    assert CommandResult(0, "").ok
    assert not CommandResult(2, "").ok
