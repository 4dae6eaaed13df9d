"""
flow-devkit: Python tooling for Flow projects - contract dependency manager and Cadence linter
"""

from importlib.metadata import PackageNotFoundError, version

from .diagnostics import LintResults
from .exceptions import (
    AccountNotFoundError,
    ContractNotFoundError,
    DevkitError,
    FileSystemError,
    GatewayError,
    ImportResolutionError,
    InvalidSourceStringError,
    ManifestError,
    ManifestNotFoundError,
    NetworkNotFoundError,
    NoContractsError,
    ParseFailedError,
    PromptCancelledError,
    RemoteSourceConflictError,
)
from .filesystem import MemoryFileSystem, OSFileSystem
from .gateway import RestGateway
from .installer import DependencyInstaller
from .linter import Linter
from .manifest import Manifest
from .types import Account, Contract, Dependency, Deployment, FlowAccount, Network, Source

try:
    __version__ = version("flow-devkit")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DependencyInstaller",
    "Linter",
    "LintResults",
    "Manifest",
    "RestGateway",
    "OSFileSystem",
    "MemoryFileSystem",
    "Account",
    "Contract",
    "Dependency",
    "Deployment",
    "FlowAccount",
    "Network",
    "Source",
    "DevkitError",
    "NetworkNotFoundError",
    "AccountNotFoundError",
    "NoContractsError",
    "ContractNotFoundError",
    "ParseFailedError",
    "RemoteSourceConflictError",
    "InvalidSourceStringError",
    "ManifestError",
    "ManifestNotFoundError",
    "FileSystemError",
    "GatewayError",
    "PromptCancelledError",
    "ImportResolutionError",
]
