"""File system abstraction used by the installer and the linter."""

import logging
import posixpath
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Protocol, Set, Union

from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

PathLike = Union[Path, str]


@dataclass(frozen=True)
class FileStat:
    """Result of a stat call."""

    path: str
    is_dir: bool
    size: int


class FileSystem(Protocol):
    """Reader/writer interface every file operation goes through."""

    def stat(self, path: PathLike) -> FileStat: ...

    def exists(self, path: PathLike) -> bool: ...

    def read_file(self, path: PathLike) -> bytes: ...

    def write_file(self, path: PathLike, data: bytes) -> None: ...

    def mkdir_all(self, path: PathLike) -> None: ...

    def list_files(self, root: PathLike, suffix: str) -> List[str]: ...


class OSFileSystem:
    """File system backed by the local disk."""

    def stat(self, path: PathLike) -> FileStat:
        """
        Stat a file or directory.

        Args:
            path: File or directory path

        Returns:
            FileStat for the path

        Raises:
            FileSystemError: If the path does not exist or cannot be read
        """
        p = Path(path)
        try:
            result = p.stat()
        except OSError as e:
            raise FileSystemError(f"Failed to stat {path}: {e}") from e
        return FileStat(path=str(p), is_dir=stat.S_ISDIR(result.st_mode), size=result.st_size)

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def read_file(self, path: PathLike) -> bytes:
        """
        Read a file.

        Args:
            path: File path

        Returns:
            File contents

        Raises:
            FileSystemError: If the file cannot be read
        """
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise FileSystemError(f"Failed to read {path}: {e}") from e

    def write_file(self, path: PathLike, data: bytes) -> None:
        """
        Write a file, replacing any existing contents.

        Args:
            path: File path
            data: Contents to write

        Raises:
            FileSystemError: If the file cannot be written
        """
        logger.debug(f"Writing {len(data)} bytes to {path}")
        try:
            Path(path).write_bytes(data)
        except OSError as e:
            raise FileSystemError(f"Failed to write {path}: {e}") from e

    def mkdir_all(self, path: PathLike) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Failed to create directory {path}: {e}") from e

    def list_files(self, root: PathLike, suffix: str) -> List[str]:
        """
        List files with the given suffix below a directory.

        Directories whose name starts with a dot are skipped.

        Args:
            root: Directory to search
            suffix: File suffix, e.g., ".cdc"

        Returns:
            Sorted list of matching file paths
        """
        root_path = Path(root)
        found = []
        for path in root_path.rglob(f"*{suffix}"):
            relative = path.relative_to(root_path)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            if path.is_file():
                found.append(str(path))
        return sorted(found)


def _key(path: PathLike) -> str:
    return posixpath.normpath(str(path).replace("\\", "/"))


class MemoryFileSystem:
    """In-memory file system, mainly for tests."""

    def __init__(self, files: Dict[str, Union[bytes, str]] = None):
        self.files: Dict[str, bytes] = {}
        self.dirs: Set[str] = {"/", "."}
        for path, data in (files or {}).items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            self.mkdir_all(posixpath.dirname(_key(path)) or ".")
            self.files[_key(path)] = data

    def stat(self, path: PathLike) -> FileStat:
        key = _key(path)
        if key in self.files:
            return FileStat(path=key, is_dir=False, size=len(self.files[key]))
        if key in self.dirs:
            return FileStat(path=key, is_dir=True, size=0)
        raise FileSystemError(f"Failed to stat {path}: no such file or directory")

    def exists(self, path: PathLike) -> bool:
        key = _key(path)
        return key in self.files or key in self.dirs

    def read_file(self, path: PathLike) -> bytes:
        key = _key(path)
        if key not in self.files:
            raise FileSystemError(f"Failed to read {path}: no such file")
        return self.files[key]

    def write_file(self, path: PathLike, data: bytes) -> None:
        key = _key(path)
        parent = posixpath.dirname(key) or "."
        if parent not in self.dirs:
            raise FileSystemError(f"Failed to write {path}: parent directory does not exist")
        self.files[key] = bytes(data)

    def mkdir_all(self, path: PathLike) -> None:
        key = _key(path)
        while key and key not in self.dirs:
            if key in self.files:
                raise FileSystemError(f"Failed to create directory {path}: file exists")
            self.dirs.add(key)
            parent = posixpath.dirname(key)
            key = parent if parent != key else ""

    def list_files(self, root: PathLike, suffix: str) -> List[str]:
        prefix = _key(root)
        found = []
        for key in self.files:
            if not key.endswith(suffix):
                continue
            relative = posixpath.relpath(key, prefix)
            if relative.startswith(".."):
                continue
            if any(part.startswith(".") for part in relative.split("/")[:-1]):
                continue
            found.append(key)
        return sorted(found)
