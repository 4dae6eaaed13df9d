"""Cadence locations: where a program or an imported declaration lives."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class AddressLocation:
    """A contract deployed on chain, identified by account address and name."""

    address: str  # 16 lowercase hex nibbles, no 0x prefix
    name: str

    def __str__(self) -> str:
        if not self.name:
            return f"0x{self.address}"
        return f"A.{self.address}.{self.name}"


@dataclass(frozen=True)
class StringLocation:
    """A file path (contains `.cdc`) or a bare contract name."""

    value: str

    def is_path(self) -> bool:
        return ".cdc" in self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class IdentifierLocation:
    """A built-in pseudo-contract such as `Crypto`."""

    value: str

    def __str__(self) -> str:
        return self.value


Location = Union[AddressLocation, StringLocation, IdentifierLocation]

CRYPTO_LOCATION = IdentifierLocation("Crypto")
TEST_LOCATION = IdentifierLocation("Test")
BLOCKCHAIN_HELPERS_LOCATION = IdentifierLocation("BlockchainHelpers")

BUILTIN_LOCATIONS = (CRYPTO_LOCATION, TEST_LOCATION, BLOCKCHAIN_HELPERS_LOCATION)
