"""Well-known contract sections offered by dependency discovery."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .constants import CORE_CONTRACTS, DEFI_ACTIONS_CONTRACTS, MAINNET, TESTNET


@dataclass
class KnownContract:
    """A contract at a fixed address on one or more networks."""

    name: str
    addresses: Dict[str, str] = field(default_factory=dict)  # network -> address

    def address_on(self, network: str) -> Optional[str]:
        return self.addresses.get(network)


@dataclass
class ContractSection:
    """A named group of known contracts."""

    name: str
    description: str = ""
    contracts: List[KnownContract] = field(default_factory=list)

    def names(self) -> List[str]:
        return [c.name for c in self.contracts]


def core_contracts() -> ContractSection:
    """System contracts, deployed at fixed addresses on mainnet."""
    section = ContractSection(name="Core Contracts", description="Essential Flow blockchain system contracts")
    for address, names in CORE_CONTRACTS.items():
        for name in names:
            section.contracts.append(KnownContract(name=name, addresses={MAINNET: address}))
    return section


def defi_actions_contracts() -> ContractSection:
    """DeFi Actions connector contracts, deployed on mainnet and testnet."""
    section = ContractSection(
        name="DeFi Actions", description="DeFi protocol integration contracts for automated actions"
    )
    for name, (mainnet_address, testnet_address) in DEFI_ACTIONS_CONTRACTS.items():
        section.contracts.append(
            KnownContract(name=name, addresses={MAINNET: mainnet_address, TESTNET: testnet_address})
        )
    return section


def get_sections() -> List[ContractSection]:
    """Return every section, in display order."""
    return [core_contracts(), defi_actions_contracts()]


def get_core_contract(name: str) -> Optional[KnownContract]:
    """Look up a system contract by name."""
    for contract in core_contracts().contracts:
        if contract.name == name:
            return contract
    return None


def is_core_contract(name: str) -> bool:
    """
    Check whether a contract name belongs to a system contract.

    System contracts exist on every network under the same names, so the
    check is by name only.
    """
    return get_core_contract(name) is not None


def filter_installed(section: ContractSection, installed: Iterable[str]) -> tuple[ContractSection, int]:
    """
    Remove already installed contracts from a section.

    Args:
        section: Section to filter
        installed: Names of installed dependencies

    Returns:
        Tuple of (filtered section, number of contracts removed)
    """
    installed = set(installed)
    remaining = [c for c in section.contracts if c.name not in installed]
    return (
        ContractSection(name=section.name, description=section.description, contracts=remaining),
        len(section.contracts) - len(remaining),
    )
