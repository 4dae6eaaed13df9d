"""Source string and address parsers for flow-devkit."""

import re

from .exceptions import InvalidSourceStringError
from .types import Source

ADDRESS_LENGTH = 16

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]{1,16}$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def normalize_address(address: str) -> str:
    """
    Convert an address to canonical form.

    Args:
        address: Hex address, with or without 0x prefix, 1 to 16 nibbles

    Returns:
        Lowercase hex address left-padded with zeros to 16 nibbles

    Raises:
        ValueError: If the address is not hex or is longer than 16 nibbles
    """
    value = address.strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    if not _HEX_PATTERN.match(value):
        raise ValueError(f"Invalid address: {address!r}")
    return value.lower().zfill(ADDRESS_LENGTH)


def addresses_equal(first: str, second: str) -> bool:
    """Compare two addresses after normalization."""
    try:
        return normalize_address(first) == normalize_address(second)
    except ValueError:
        return first == second


def parse_source_string(source: str) -> Source:
    """
    Parse a source string of the form network://address.Contract.

    Args:
        source: Source string, e.g., "testnet://8efde57e98c557fa.Hello"

    Returns:
        Source with the address in canonical form

    Raises:
        InvalidSourceStringError: If the string does not match the grammar
    """
    network, sep, rest = source.partition("://")
    if not sep or not network:
        raise InvalidSourceStringError(
            f"Invalid source string {source!r}: expected network://address.Contract"
        )

    address, dot, contract = rest.partition(".")
    if not dot or not _IDENTIFIER_PATTERN.match(contract):
        raise InvalidSourceStringError(
            f"Invalid source string {source!r}: expected network://address.Contract"
        )

    try:
        address = normalize_address(address)
    except ValueError as e:
        raise InvalidSourceStringError(f"Invalid source string {source!r}: {e}") from e

    return Source(network=network, address=address, contract=contract)


def build_source_string(network: str, address: str, contract: str) -> str:
    """
    Build the source string used as the installer's de-duplication key.

    Args:
        network: Network name
        address: Hex address, any accepted form
        contract: Contract name

    Returns:
        Source string with the address in canonical form
    """
    return f"{network}://{normalize_address(address)}.{contract}"


def is_source_string(value: str) -> bool:
    """Return True if the value looks like a source string rather than a contract name."""
    return "://" in value
