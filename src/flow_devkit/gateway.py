"""Chain gateway client for the Flow Access REST API."""

import base64
import logging
import re
from typing import Dict, Optional, Protocol

import requests

from .constants import (
    ACCESS_NODE_NETWORKS,
    DEFAULT_NETWORKS,
    DEFAULT_TIMEOUT,
    GATEWAY_NETWORKS,
    NETWORK_CONFIG,
    REST_PORTS,
)
from .exceptions import AccountNotFoundError, GatewayError
from .parsers import normalize_address
from .types import FlowAccount

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    """Read-only view of a network used by the installer."""

    def get_account(self, address: str) -> FlowAccount: ...


# access.testnet.nodes.onflow.org, access-001.devnet52.nodes.onflow.org
ACCESS_NODE_HOST = re.compile(r"^access(?:-\d+)?\.(?P<network>[a-z]+)\d*\.nodes\.onflow\.org$")

# Hosts that listen on every interface are reached through loopback
WILDCARD_HOSTS = ("0.0.0.0", "[::]", "")


def rest_url_for_host(host: str) -> str:
    """
    Map an access node host from the manifest to a REST API base URL.

    Manifest hosts are gRPC endpoints. Public access nodes map to their
    network's REST endpoint; any other host keeps its name and has a
    well-known gRPC port swapped for the matching REST port.

    Args:
        host: Host as written in the networks section, e.g., "127.0.0.1:3569"

    Returns:
        REST base URL without trailing slash
    """
    host = host.strip()
    if host in NETWORK_CONFIG:
        return NETWORK_CONFIG[host]["rest_url"]
    if host.startswith(("http://", "https://")):
        return host.rstrip("/")

    hostname, separator, port = host.rpartition(":")
    if not separator or "]" in port:
        hostname, port = host, ""

    match = ACCESS_NODE_HOST.match(hostname.lower())
    if match is not None:
        network = match.group("network")
        return f"https://rest-{ACCESS_NODE_NETWORKS.get(network, network)}.onflow.org"

    if hostname in WILDCARD_HOSTS:
        hostname = "127.0.0.1"
    port = REST_PORTS.get(port, port)
    return f"http://{hostname}:{port}" if port else f"http://{hostname}"


class RestGateway:
    """Gateway talking to one network's Access REST API."""

    def __init__(self, network: str, host: str, timeout: float = DEFAULT_TIMEOUT):
        self.network = network
        self.host = host
        self.base_url = rest_url_for_host(host)
        self.timeout = timeout

    def get_account(self, address: str) -> FlowAccount:
        """
        Fetch an account with its contracts.

        Args:
            address: Hex address, with or without 0x prefix

        Returns:
            FlowAccount with contract code decoded to bytes

        Raises:
            AccountNotFoundError: If the account does not exist
            GatewayError: If the request fails or the response is malformed
        """
        address = normalize_address(address)
        url = f"{self.base_url}/v1/accounts/{address}"
        logger.debug(f"Fetching account {address} from {self.network} ({url})")

        try:
            response = requests.get(url, params={"expand": "contracts,keys"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"Network error fetching account {address} on {self.network}: {e}") from e

        # Check for HTTP errors
        if response.status_code == 404:
            raise AccountNotFoundError(f"Account 0x{address} not found on {self.network}")
        if response.status_code != 200:
            raise GatewayError(
                f"Access API request on {self.network} failed with status {response.status_code}"
            )

        try:
            result = response.json()
            contracts: Dict[str, bytes] = {}
            for name, encoded in (result.get("contracts") or {}).items():
                contracts[name] = base64.b64decode(encoded, validate=True)
            return FlowAccount(
                address=normalize_address(result.get("address", address)),
                balance=int(result.get("balance", 0)),
                keys=list(result.get("keys") or []),
                contracts=contracts,
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise GatewayError(f"Malformed account response from {self.network}: {e}") from e


def create_gateways(
    networks: Dict[str, str],
    timeout: float = DEFAULT_TIMEOUT,
    host_overrides: Optional[Dict[str, str]] = None,
) -> Dict[str, Gateway]:
    """
    Create one gateway per supported network.

    Host precedence: override, then the manifest networks section, then the
    standard host.

    Args:
        networks: Mapping of network name -> host from the manifest
        timeout: Request timeout in seconds
        host_overrides: Mapping of network name -> host from the environment

    Returns:
        Mapping of network name -> gateway
    """
    host_overrides = host_overrides or {}
    gateways: Dict[str, Gateway] = {}
    for network in GATEWAY_NETWORKS:
        host = host_overrides.get(network) or networks.get(network) or DEFAULT_NETWORKS[network]
        gateways[network] = RestGateway(network, host, timeout=timeout)
    return gateways
