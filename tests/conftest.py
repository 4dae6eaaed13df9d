"""Shared pytest fixtures for flow-devkit tests."""

import io
from typing import Callable, Dict, List, Optional, Sequence

import pytest
from rich.console import Console

from flow_devkit.exceptions import AccountNotFoundError
from flow_devkit.filesystem import MemoryFileSystem
from flow_devkit.manifest import Manifest
from flow_devkit.parsers import normalize_address
from flow_devkit.types import Account, FlowAccount


class ScriptedPrompter:
    """Prompter answering from queues; records every question asked."""

    def __init__(
        self,
        confirms: Optional[List[bool]] = None,
        selections: Optional[List[str]] = None,
        multi_selections: Optional[List[List[str]]] = None,
        addresses: Optional[List[Optional[str]]] = None,
    ):
        self.confirms = list(confirms or [])
        self.selections = list(selections or [])
        self.multi_selections = list(multi_selections or [])
        self.addresses = list(addresses or [])
        self.asked: List[str] = []

    def confirm(self, message: str, default: bool = False) -> bool:
        self.asked.append(message)
        return self.confirms.pop(0) if self.confirms else default

    def select(self, message: str, options: Sequence[str]) -> str:
        self.asked.append(message)
        return self.selections.pop(0) if self.selections else options[-1]

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]:
        self.asked.append(message)
        return self.multi_selections.pop(0) if self.multi_selections else []

    def address(self, message: str) -> Optional[str]:
        self.asked.append(message)
        return self.addresses.pop(0) if self.addresses else None


class FakeGateway:
    """Gateway serving accounts from a dict; records every lookup."""

    def __init__(self, accounts: Optional[Dict[str, Dict[str, str]]] = None):
        self.accounts: Dict[str, FlowAccount] = {}
        self.calls: List[str] = []
        for address, contracts in (accounts or {}).items():
            self.set_account(address, contracts)

    def set_account(self, address: str, contracts: Dict[str, str]) -> None:
        address = normalize_address(address)
        self.accounts[address] = FlowAccount(
            address=address,
            contracts={name: code.encode("utf-8") for name, code in contracts.items()},
        )

    def get_account(self, address: str) -> FlowAccount:
        address = normalize_address(address)
        self.calls.append(address)
        if address not in self.accounts:
            raise AccountNotFoundError(f"Account 0x{address} not found")
        return self.accounts[address]


@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    """Return an empty in-memory file system."""
    return MemoryFileSystem()


@pytest.fixture
def console_output() -> io.StringIO:
    """Buffer receiving console output."""
    return io.StringIO()


@pytest.fixture
def console(console_output: io.StringIO) -> Console:
    """Return a wide, colorless console writing to console_output."""
    return Console(file=console_output, width=300, color_system=None, force_terminal=False)


@pytest.fixture
def prompter() -> ScriptedPrompter:
    """Return a prompter that declines everything."""
    return ScriptedPrompter()


@pytest.fixture
def manifest(memory_fs: MemoryFileSystem) -> Manifest:
    """Return a new manifest with the standard networks and an emulator account."""
    manifest = Manifest.default("flow.json", memory_fs)
    manifest.add_or_update_account(
        Account(name="emulator-account", address="f8d6e0586b0a20c7", key="0x" + "1" * 64)
    )
    return manifest


@pytest.fixture
def make_prompter() -> Callable[..., ScriptedPrompter]:
    """Return a factory for prompters with scripted answers."""
    return ScriptedPrompter


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Return a factory for gateways serving fixed accounts."""
    return FakeGateway
