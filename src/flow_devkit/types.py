"""Data types and dataclasses for flow-devkit."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Network:
    """A network entry of the project manifest."""

    name: str  # e.g., "testnet"
    host: str  # Access node host, e.g., "access.testnet.nodes.onflow.org:9000"
    key: Optional[str] = None  # Access node public key for secured connections


@dataclass
class Account:
    """An account entry of the project manifest."""

    name: str
    address: str  # Hex address without 0x prefix
    key: Any = None  # Key descriptor, kept verbatim


@dataclass
class Contract:
    """A contract entry of the project manifest."""

    name: str
    location: str  # Source file path relative to the manifest
    aliases: Dict[str, str] = field(default_factory=dict)  # network -> address
    is_dependency: bool = False  # True when derived from a dependency record


@dataclass
class Deployment:
    """Contracts deployed to one account on one network."""

    network: str
    account: str
    contracts: List[str] = field(default_factory=list)
    args: Dict[str, Any] = field(default_factory=dict)  # contract name -> init arguments

    def add_contract(self, name: str) -> None:
        """Add a contract to the deployment unless already present."""
        if name not in self.contracts:
            self.contracts.append(name)


@dataclass(frozen=True)
class Source:
    """On-chain origin of a dependency."""

    network: str  # e.g., "mainnet"
    address: str  # Hex address without 0x prefix
    contract: str  # Contract name at the address

    @property
    def source_string(self) -> str:
        """Return the source string form, network://address.Contract."""
        return f"{self.network}://{self.address}.{self.contract}"


@dataclass
class Dependency:
    """A dependency entry of the project manifest."""

    name: str
    source: Source
    hash: str = ""  # SHA-256 hex digest of the original on-chain code
    aliases: Dict[str, str] = field(default_factory=dict)  # network -> address


@dataclass
class FlowAccount:
    """An account as returned by a chain gateway."""

    address: str
    balance: int = 0
    keys: List[Dict[str, Any]] = field(default_factory=list)
    contracts: Dict[str, bytes] = field(default_factory=dict)  # name -> code, in account order
