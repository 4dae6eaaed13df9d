"""Path management utilities for flow-devkit."""

import posixpath
from pathlib import Path
from typing import Optional, Union

from .constants import IMPORTS_DIRNAME, MANIFEST_FILENAME


def get_manifest_path(
    config_path: Optional[Union[Path, str]] = None, cwd: Optional[Union[Path, str]] = None
) -> Path:
    """
    Get the manifest path.

    Args:
        config_path: Custom manifest path (defaults to flow.json)
        cwd: Directory relative paths are resolved against (defaults to the current directory)

    Returns:
        Path to the manifest
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    if config_path is None:
        return base / MANIFEST_FILENAME

    path = Path(config_path)
    return path if path.is_absolute() else base / path


def dependency_file_path(address: str, contract: str) -> str:
    """
    Get the on-disk location of a dependency, relative to the manifest directory.

    Args:
        address: Canonical hex address without 0x prefix
        contract: Contract name

    Returns:
        POSIX path imports/<address>/<contract>.cdc
    """
    return posixpath.join(IMPORTS_DIRNAME, address.lower(), f"{contract}.cdc")


def normalize_location(location: str) -> str:
    """
    Normalize a manifest-relative source location for comparison.

    Args:
        location: Path as written in the manifest or given on the command line

    Returns:
        Normalized POSIX path without leading ./
    """
    return posixpath.normpath(location.replace("\\", "/"))
