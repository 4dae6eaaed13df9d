"""Unit tests for manifest loading, validation and saving."""

import json

import pytest

from flow_devkit.exceptions import ContractNotFoundError, ManifestError, ManifestNotFoundError
from flow_devkit.filesystem import MemoryFileSystem
from flow_devkit.manifest import Manifest
from flow_devkit.types import Contract, Dependency, Deployment, Network, Source

CANONICAL = {
    "networks": {
        "emulator": "127.0.0.1:3569",
        "testnet": "access.testnet.nodes.onflow.org:9000",
        "custom": {"host": "10.0.0.1:3569", "key": "abcd"},
    },
    "accounts": {
        "emulator-account": {"address": "f8d6e0586b0a20c7", "key": "0xkey"},
    },
    "contracts": {
        "Foo": "contracts/Foo.cdc",
        "Bar": {"source": "contracts/Bar.cdc", "aliases": {"testnet": "0000000000000005"}},
    },
    "deployments": {
        "emulator": {"emulator-account": ["Foo", {"name": "Hello", "args": [{"type": "String", "value": "hi"}]}]},
    },
    "dependencies": {
        "Hello": {
            "source": {"network": "testnet", "address": "8efde57e98c557fa", "contract": "Hello"},
            "hash": "ab" * 32,
            "aliases": {"testnet": "8efde57e98c557fa"},
        },
    },
    "emulators": {"default": {"port": 3569}},
}


def _write(fs: MemoryFileSystem, data) -> None:
    fs.write_file("flow.json", json.dumps(data, indent=2).encode("utf-8"))


class TestLoad:
    """Test loading manifests from a file system."""

    def test_missing_manifest(self, memory_fs):
        """Test that a missing file raises ManifestNotFoundError."""
        with pytest.raises(ManifestNotFoundError):
            Manifest.load("flow.json", memory_fs)

    def test_invalid_json(self, memory_fs):
        """Test that invalid JSON raises ManifestError."""
        memory_fs.write_file("flow.json", b"{not json")

        with pytest.raises(ManifestError, match="Invalid JSON"):
            Manifest.load("flow.json", memory_fs)

    def test_non_object_document(self):
        """Test that a JSON array is rejected."""
        with pytest.raises(ManifestError):
            Manifest.from_dict([])

    def test_reads_every_section(self, memory_fs):
        """Test that each section is parsed into typed records."""
        _write(memory_fs, CANONICAL)

        manifest = Manifest.load("flow.json", memory_fs)

        assert manifest.networks["custom"] == Network(name="custom", host="10.0.0.1:3569", key="abcd")
        assert manifest.accounts["emulator-account"].address == "f8d6e0586b0a20c7"
        assert manifest.contracts["Bar"].aliases == {"testnet": "0000000000000005"}
        deployment = manifest.get_deployment("emulator", "emulator-account")
        assert deployment.contracts == ["Foo", "Hello"]
        assert deployment.args["Hello"] == [{"type": "String", "value": "hi"}]
        assert manifest.dependencies["Hello"].source == Source("testnet", "8efde57e98c557fa", "Hello")
        assert manifest.extra == {"emulators": {"default": {"port": 3569}}}

    def test_canonical_round_trip_is_byte_identical(self, memory_fs):
        """Test that loading and saving a canonical manifest changes nothing."""
        original = json.dumps(CANONICAL, indent=2, ensure_ascii=False) + "\n"
        memory_fs.write_file("flow.json", original.encode("utf-8"))

        Manifest.load("flow.json", memory_fs).save()

        assert memory_fs.read_file("flow.json").decode("utf-8") == original

    def test_dependency_as_source_string(self):
        """Test the string shorthand for a dependency."""
        manifest = Manifest.from_dict({"dependencies": {"FlowToken": "mainnet://1654653399040a61.FlowToken"}})

        dependency = manifest.dependencies["FlowToken"]
        assert dependency.source == Source("mainnet", "1654653399040a61", "FlowToken")
        assert dependency.hash == ""

    def test_dependency_with_source_string_object(self):
        """Test an object dependency whose source is a string."""
        manifest = Manifest.from_dict(
            {"dependencies": {"Foo": {"source": "testnet://0x01.Foo", "hash": "00"}}}
        )

        assert manifest.dependencies["Foo"].source.address == "0000000000000001"
        assert manifest.dependencies["Foo"].hash == "00"

    def test_invalid_dependency_source(self):
        """Test that a malformed source string is reported against its dependency."""
        with pytest.raises(ManifestError, match="Foo"):
            Manifest.from_dict({"dependencies": {"Foo": "testnet://zz.Foo"}})

    def test_invalid_account(self):
        """Test that an account without an address is rejected."""
        with pytest.raises(ManifestError):
            Manifest.from_dict({"accounts": {"a": {"key": "k"}}})


class TestValidate:
    """Test cross-section validation."""

    def test_deployment_of_unknown_contract(self):
        """Test that deployments must reference known contracts."""
        with pytest.raises(ManifestError, match="Missing"):
            Manifest.from_dict({"deployments": {"emulator": {"emulator-account": ["Missing"]}}})

    def test_deployment_of_dependency_is_valid(self):
        """Test that a dependency counts as a contract for deployments."""
        manifest = Manifest.from_dict(
            {
                "deployments": {"emulator": {"emulator-account": ["Hello"]}},
                "dependencies": {"Hello": "testnet://8efde57e98c557fa.Hello"},
            }
        )

        assert manifest.get_deployment("emulator", "emulator-account").contracts == ["Hello"]

    def test_dependency_on_unknown_network(self):
        """Test that dependency networks must be declared or standard."""
        with pytest.raises(ManifestError, match="unknown network"):
            Manifest.from_dict({"dependencies": {"Foo": "devnet://01.Foo"}})

    def test_dependency_on_declared_network(self):
        """Test that a user-declared network is accepted."""
        manifest = Manifest.from_dict(
            {"networks": {"devnet": "127.0.0.1:9999"}, "dependencies": {"Foo": "devnet://01.Foo"}}
        )

        assert manifest.dependencies["Foo"].source.network == "devnet"


class TestSections:
    """Test section operations."""

    def test_default_networks(self):
        """Test that a new manifest declares the standard networks."""
        manifest = Manifest.default()

        assert list(manifest.networks) == ["emulator", "testing", "testnet", "mainnet"]

    def test_remove_network_in_use(self, manifest):
        """Test that a referenced network cannot be removed."""
        manifest.add_or_update_dependency(
            Dependency(name="Hello", source=Source("testnet", "8efde57e98c557fa", "Hello"))
        )

        with pytest.raises(ManifestError, match="Hello"):
            manifest.remove_network("testnet")

        manifest.remove_network("testing")
        assert "testing" not in manifest.networks

    def test_add_and_get_network(self, manifest):
        """Test adding and replacing a network by name."""
        manifest.add_or_update_network(Network(name="devnet", host="10.0.0.1:3569"))
        manifest.add_or_update_network(Network(name="devnet", host="10.0.0.2:3569", key="abcd"))

        assert manifest.get_network("devnet") == Network(name="devnet", host="10.0.0.2:3569", key="abcd")
        assert manifest.get_network("missing") is None

    def test_remove_dependency(self, manifest):
        """Test removing a dependency, and that an unknown name is refused."""
        manifest.add_or_update_dependency(
            Dependency(name="Hello", source=Source("testnet", "8efde57e98c557fa", "Hello"))
        )

        manifest.remove_dependency("Hello")

        assert manifest.get_dependency("Hello") is None
        with pytest.raises(ManifestError):
            manifest.remove_dependency("Hello")

    def test_remove_deployed_account_and_contract(self, manifest):
        """Test that deployed accounts and contracts cannot be removed."""
        manifest.add_or_update_contract(Contract(name="Foo", location="contracts/Foo.cdc"))
        manifest.add_contract_to_deployment("emulator", "emulator-account", "Foo")

        with pytest.raises(ManifestError):
            manifest.remove_account("emulator-account")
        with pytest.raises(ManifestError):
            manifest.remove_contract("Foo")

    def test_add_contract_to_deployment_deduplicates(self, manifest):
        """Test that a contract is listed once per deployment."""
        manifest.add_contract_to_deployment("emulator", "emulator-account", "Foo")
        manifest.add_contract_to_deployment("emulator", "emulator-account", "Foo")

        assert manifest.get_deployment("emulator", "emulator-account").contracts == ["Foo"]

    def test_add_or_update_deployment_replaces(self, manifest):
        """Test that a deployment for the same network and account is replaced."""
        manifest.add_or_update_deployment(Deployment("emulator", "emulator-account", ["A"]))
        manifest.add_or_update_deployment(Deployment("emulator", "emulator-account", ["B"]))

        assert len(manifest.deployments) == 1
        assert manifest.deployments[0].contracts == ["B"]

    def test_dependency_alias_includes_source(self, manifest):
        """Test that stored dependencies always alias their source network."""
        dependency = Dependency(
            name="Hello",
            source=Source("testnet", "8efde57e98c557fa", "Hello"),
            aliases={"testnet": "0000000000000001", "mainnet": "0000000000000002"},
        )

        manifest.add_or_update_dependency(dependency)

        assert manifest.dependencies["Hello"].aliases == {
            "testnet": "8efde57e98c557fa",
            "mainnet": "0000000000000002",
        }

    def test_dependency_contract(self, manifest):
        """Test the contract record derived from a dependency."""
        manifest.add_or_update_dependency(Dependency(name="Bar", source=Source("emulator", "0x2", "Bar")))

        contract = manifest.contract_by_name("Bar")

        assert contract.is_dependency
        assert contract.location == "imports/0000000000000002/Bar.cdc"
        assert contract.aliases == {"emulator": "0x2"}
        assert manifest.contract_by_location("./imports/0000000000000002/Bar.cdc") == contract

    def test_user_contract_shadows_dependency(self, manifest):
        """Test that a user contract wins over a dependency of the same name."""
        manifest.add_or_update_contract(Contract(name="Hello", location="contracts/Hello.cdc"))
        manifest.add_or_update_dependency(
            Dependency(name="Hello", source=Source("testnet", "8efde57e98c557fa", "Hello"))
        )

        assert manifest.contract_by_name("Hello").location == "contracts/Hello.cdc"
        assert [c.name for c in manifest.all_contracts()] == ["Hello"]

    def test_contract_by_name_missing(self, manifest):
        """Test that an unknown contract raises ContractNotFoundError."""
        with pytest.raises(ContractNotFoundError):
            manifest.contract_by_name("Missing")

    def test_contract_path_joins_manifest_directory(self):
        """Test that contract locations resolve against the manifest directory."""
        manifest = Manifest("project/flow.json", MemoryFileSystem())

        path = manifest.contract_path(Contract(name="Foo", location="./contracts/Foo.cdc"))

        assert path == "project/contracts/Foo.cdc"

    def test_save_writes_canonical_json(self, manifest, memory_fs):
        """Test that save writes indented JSON with a trailing newline."""
        manifest.save()

        text = memory_fs.read_file("flow.json").decode("utf-8")
        assert text.endswith("}\n")
        assert json.loads(text)["accounts"]["emulator-account"]["address"] == "f8d6e0586b0a20c7"
        assert "deployments" not in json.loads(text)
