"""Source resolution for imports, by contract name or by relative path."""

import logging
import os
import posixpath
from typing import Dict, Optional

from .exceptions import FileSystemError, ImportResolutionError
from .filesystem import FileSystem
from .manifest import Manifest
from .parsers import addresses_equal
from .paths import normalize_location
from .types import Contract

logger = logging.getLogger(__name__)


def _posix(path: str) -> str:
    return path.replace("\\", "/")


class SourceResolver:
    """
    Locates contract source on disk using the manifest and the file system.

    Names resolve through the manifest contracts (user-authored and
    dependency-backed); paths resolve relative to the importing file.
    """

    def __init__(self, fs: FileSystem, manifest: Optional[Manifest] = None):
        self.fs = fs
        self.manifest = manifest

    def resolve_name(self, name: str) -> str:
        """
        Resolve a contract name to its source file.

        Args:
            name: Contract name as written in `import "Name"`

        Returns:
            Path of the source file

        Raises:
            ImportResolutionError: If there is no manifest or no contract of that name
        """
        if self.manifest is None:
            raise ImportResolutionError(f"cannot resolve contract {name!r} without a flow.json")
        contract = self.manifest.get_contract(name)
        if contract is None:
            raise ImportResolutionError(f"contract {name!r} not found in {self.manifest.path}")
        path = self.manifest.contract_path(contract)
        logger.debug(f"Resolved contract {name} to {path}")
        return path

    def resolve_path(self, path: str, parent_path: Optional[str] = None) -> str:
        """
        Resolve an import path relative to the directory of the importing file.

        Args:
            path: Path as written in `import "./Foo.cdc"`
            parent_path: Path of the importing file, if any

        Returns:
            Normalized path
        """
        base = posixpath.dirname(_posix(parent_path)) if parent_path else ""
        return posixpath.normpath(posixpath.join(base, _posix(path)))

    def read(self, path: str) -> bytes:
        """
        Read source code.

        Raises:
            ImportResolutionError: If the file cannot be read
        """
        try:
            return self.fs.read_file(path)
        except FileSystemError as e:
            raise ImportResolutionError(str(e)) from e

    # Contract lookup for access control

    def contract_for_path(self, path: str) -> Optional[Contract]:
        """Find the manifest contract whose location is the given file."""
        if self.manifest is None:
            return None
        manifest_dir = os.path.abspath(str(self.manifest.directory))
        relative = _posix(os.path.relpath(os.path.abspath(path), manifest_dir))
        return self.manifest.contract_by_location(normalize_location(relative))

    def contract_by_name(self, name: str) -> Optional[Contract]:
        if self.manifest is None:
            return None
        return self.manifest.get_contract(name)

    def effective_addresses(self, contract: Contract) -> Dict[str, str]:
        """
        Addresses a contract is considered deployed at, per network.

        Precedence: the contract record's aliases, then the aliases of the
        dependency of the same name, then the dependency's source address.
        """
        if contract.aliases:
            return dict(contract.aliases)
        dependency = self.manifest.get_dependency(contract.name) if self.manifest is not None else None
        if dependency is None:
            return {}
        if dependency.aliases:
            return dict(dependency.aliases)
        return {dependency.source.network: dependency.source.address}

    def same_account(self, first: Contract, second: Contract) -> bool:
        """Return True if on some network both contracts resolve to the same address."""
        first_addresses = self.effective_addresses(first)
        second_addresses = self.effective_addresses(second)
        for network, address in first_addresses.items():
            other = second_addresses.get(network)
            if other is not None and addresses_equal(address, other):
                return True
        return False
