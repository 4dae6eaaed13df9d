"""Unit tests for the file system implementations."""

import pytest

from flow_devkit.exceptions import DevkitError, FileSystemError
from flow_devkit.filesystem import MemoryFileSystem, OSFileSystem


class TestMemoryFileSystem:
    """Test the in-memory file system."""

    def test_initial_files_create_parent_directories(self):
        """Test that seeded files can be read and their directories exist."""
        fs = MemoryFileSystem({"contracts/Foo.cdc": "access(all) contract Foo {}"})

        assert fs.read_file("contracts/Foo.cdc") == b"access(all) contract Foo {}"
        assert fs.exists("contracts")
        assert fs.stat("contracts").is_dir

    def test_paths_are_normalized(self):
        """Test that ./ and redundant separators refer to the same file."""
        fs = MemoryFileSystem({"a/b.cdc": b"x"})

        assert fs.read_file("./a/b.cdc") == b"x"
        assert fs.read_file("a/../a/b.cdc") == b"x"
        assert fs.stat("a/b.cdc").size == 1

    def test_read_missing_file(self):
        """Test that reading a missing file raises FileSystemError."""
        with pytest.raises(FileSystemError):
            MemoryFileSystem().read_file("missing.cdc")

    def test_stat_missing_file(self):
        """Test that stat of a missing path raises FileSystemError."""
        with pytest.raises(FileSystemError):
            MemoryFileSystem().stat("missing.cdc")

    def test_write_requires_parent_directory(self):
        """Test that writing below a missing directory fails."""
        fs = MemoryFileSystem()

        with pytest.raises(FileSystemError):
            fs.write_file("imports/0000000000000001/Foo.cdc", b"")

        fs.mkdir_all("imports/0000000000000001")
        fs.write_file("imports/0000000000000001/Foo.cdc", b"code")
        assert fs.read_file("imports/0000000000000001/Foo.cdc") == b"code"

    def test_mkdir_over_file_fails(self):
        """Test that a directory cannot replace a file."""
        fs = MemoryFileSystem({"a": b""})

        with pytest.raises(FileSystemError):
            fs.mkdir_all("a/b")

    def test_list_files(self):
        """Test listing by suffix, skipping hidden directories and other roots."""
        fs = MemoryFileSystem(
            {
                "project/b.cdc": b"",
                "project/a/c.cdc": b"",
                "project/.git/d.cdc": b"",
                "project/flow.json": b"{}",
                "other/e.cdc": b"",
            }
        )

        assert fs.list_files("project", ".cdc") == ["project/a/c.cdc", "project/b.cdc"]


class TestOSFileSystem:
    """Test the disk-backed file system."""

    def test_write_and_read(self, tmp_path):
        """Test a write followed by a read."""
        fs = OSFileSystem()
        target = tmp_path / "imports" / "0000000000000001"

        fs.mkdir_all(target)
        fs.write_file(target / "Foo.cdc", b"code")

        assert fs.exists(target / "Foo.cdc")
        assert fs.read_file(target / "Foo.cdc") == b"code"
        assert fs.stat(target).is_dir
        assert fs.stat(target / "Foo.cdc").size == 4

    def test_read_missing_file(self, tmp_path):
        """Test that reading a missing file raises FileSystemError."""
        with pytest.raises(FileSystemError):
            OSFileSystem().read_file(tmp_path / "missing.cdc")

    def test_stat_missing_path(self, tmp_path):
        """Test that stat of a missing path raises FileSystemError, a DevkitError."""
        with pytest.raises(DevkitError, match="missing.cdc"):
            OSFileSystem().stat(tmp_path / "missing.cdc")

    def test_write_into_missing_directory(self, tmp_path):
        """Test that writing without a parent directory raises FileSystemError."""
        with pytest.raises(FileSystemError):
            OSFileSystem().write_file(tmp_path / "missing" / "Foo.cdc", b"")

    def test_list_files(self, tmp_path):
        """Test that hidden directories are skipped and results are sorted."""
        (tmp_path / "b.cdc").write_text("")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "a.cdc").write_text("")
        (tmp_path / ".hidden").mkdir()
        (tmp_path / ".hidden" / "c.cdc").write_text("")
        (tmp_path / "notes.txt").write_text("")

        found = OSFileSystem().list_files(tmp_path, ".cdc")

        assert found == sorted([str(tmp_path / "b.cdc"), str(tmp_path / "sub" / "a.cdc")])
