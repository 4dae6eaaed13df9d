"""Unit tests for the Access REST API gateway."""

import base64

import pytest
import requests
import responses

from flow_devkit.exceptions import AccountNotFoundError, GatewayError
from flow_devkit.gateway import RestGateway, create_gateways, rest_url_for_host

ACCOUNT_URL = "https://rest-testnet.onflow.org/v1/accounts/8efde57e98c557fa"

HELLO_CODE = "access(all) contract Hello {}\n"


class TestRestUrlForHost:
    """Test mapping manifest hosts to REST endpoints."""

    def test_known_hosts(self):
        """Test the standard access nodes."""
        assert rest_url_for_host("access.testnet.nodes.onflow.org:9000") == "https://rest-testnet.onflow.org"
        assert rest_url_for_host("access.mainnet.nodes.onflow.org:9000") == "https://rest-mainnet.onflow.org"
        assert rest_url_for_host("127.0.0.1:3569") == "http://127.0.0.1:8888"

    def test_url_host_used_as_is(self):
        """Test that an explicit URL is kept, minus the trailing slash."""
        assert rest_url_for_host("https://rest.example.org/") == "https://rest.example.org"

    def test_bare_host(self):
        """Test that an unknown bare host is assumed to speak plain HTTP."""
        assert rest_url_for_host("10.0.0.1:8888") == "http://10.0.0.1:8888"

    def test_public_access_nodes(self):
        """Test that any public access node maps to its network's REST endpoint."""
        assert rest_url_for_host("access.devnet.nodes.onflow.org:9000") == "https://rest-testnet.onflow.org"
        assert rest_url_for_host("access-001.devnet52.nodes.onflow.org:9000") == "https://rest-testnet.onflow.org"
        assert rest_url_for_host("access-003.mainnet26.nodes.onflow.org:9000") == "https://rest-mainnet.onflow.org"

    def test_grpc_ports_swapped_for_rest_ports(self):
        """Test that well-known gRPC ports become the REST port of the same host."""
        assert rest_url_for_host("0.0.0.0:3569") == "http://127.0.0.1:8888"
        assert rest_url_for_host("192.168.1.5:3569") == "http://192.168.1.5:8888"
        assert rest_url_for_host("access.example.org:9000") == "http://access.example.org:8070"

    def test_host_without_port(self):
        """Test a host name without a port."""
        assert rest_url_for_host("node.example.org") == "http://node.example.org"


class TestGetAccount:
    """Test fetching accounts."""

    @responses.activate
    def test_decodes_contracts(self):
        """Test that contract code is base64-decoded."""
        responses.add(
            responses.GET,
            ACCOUNT_URL,
            json={
                "address": "0x8efde57e98c557fa",
                "balance": "100000",
                "keys": [],
                "contracts": {"Hello": base64.b64encode(HELLO_CODE.encode()).decode()},
            },
            status=200,
        )

        account = RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("0x8efde57e98c557fa")

        assert account.address == "8efde57e98c557fa"
        assert account.balance == 100000
        assert account.contracts == {"Hello": HELLO_CODE.encode()}
        assert "expand=contracts" in responses.calls[0].request.url

    @responses.activate
    def test_account_without_contracts(self):
        """Test an account whose contracts field is absent."""
        responses.add(responses.GET, ACCOUNT_URL, json={"address": "8efde57e98c557fa", "balance": "0"}, status=200)

        account = RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")

        assert account.contracts == {}

    @responses.activate
    def test_devnet_host_requests_testnet_rest_endpoint(self):
        """Test that the gRPC host of a generated manifest is not sent REST requests."""
        responses.add(responses.GET, ACCOUNT_URL, json={"address": "8efde57e98c557fa", "balance": "0"}, status=200)

        RestGateway("testnet", "access.devnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")

        assert responses.calls[0].request.url.startswith(ACCOUNT_URL)

    @responses.activate
    def test_not_found(self):
        """Test that 404 raises AccountNotFoundError."""
        responses.add(responses.GET, ACCOUNT_URL, json={"code": 404, "message": "not found"}, status=404)

        with pytest.raises(AccountNotFoundError):
            RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")

    @responses.activate
    def test_server_error(self):
        """Test that other HTTP errors raise GatewayError."""
        responses.add(responses.GET, ACCOUNT_URL, body="oops", status=500)

        with pytest.raises(GatewayError, match="500"):
            RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")

    @responses.activate
    def test_connection_error(self):
        """Test that transport errors raise GatewayError."""
        responses.add(responses.GET, ACCOUNT_URL, body=requests.ConnectionError("refused"))

        with pytest.raises(GatewayError, match="Network error"):
            RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")

    @responses.activate
    def test_malformed_contract_encoding(self):
        """Test that invalid base64 raises GatewayError."""
        responses.add(
            responses.GET,
            ACCOUNT_URL,
            json={"address": "8efde57e98c557fa", "balance": "0", "contracts": {"Hello": "not base64!"}},
            status=200,
        )

        with pytest.raises(GatewayError, match="Malformed"):
            RestGateway("testnet", "access.testnet.nodes.onflow.org:9000").get_account("8efde57e98c557fa")


class TestCreateGateways:
    """Test building the per-network gateways."""

    def test_host_precedence(self):
        """Test override, then manifest host, then standard host."""
        gateways = create_gateways(
            {"emulator": "localhost:3569", "testnet": "access.testnet.nodes.onflow.org:9000"},
            timeout=5,
            host_overrides={"testnet": "https://rest.example.org"},
        )

        assert set(gateways) == {"emulator", "testnet", "mainnet"}
        assert gateways["emulator"].base_url == "http://localhost:8888"
        assert gateways["testnet"].base_url == "https://rest.example.org"
        assert gateways["mainnet"].base_url == "https://rest-mainnet.onflow.org"
        assert gateways["mainnet"].timeout == 5

    def test_hosts_written_by_flow_init(self):
        """Test the testnet and emulator hosts of a generated flow.json."""
        gateways = create_gateways(
            {"emulator": "0.0.0.0:3569", "testnet": "access.devnet.nodes.onflow.org:9000"}
        )

        assert gateways["emulator"].base_url == "http://127.0.0.1:8888"
        assert gateways["testnet"].base_url == "https://rest-testnet.onflow.org"
