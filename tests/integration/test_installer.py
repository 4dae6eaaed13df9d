"""Integration tests for the dependency installer."""

import hashlib
import json

import pytest

from flow_devkit.exceptions import (
    ContractNotFoundError,
    NetworkNotFoundError,
    NoContractsError,
    ParseFailedError,
    RemoteSourceConflictError,
)
from flow_devkit.installer import CategorizedLogs, DependencyInstaller, hash_contract
from flow_devkit.manifest import Manifest
from flow_devkit.types import Contract, Dependency, Source

HELLO_ADDRESS = "8efde57e98c557fa"
HELLO_CODE = "access(all) contract Hello {\n    access(all) fun greet(): String { return \"Hello\" }\n}\n"

FOO_CODE = "import Bar from 0x02\n\naccess(all) contract Foo {}\n"
BAR_CODE = "access(all) contract Bar {}\n"

FLOW_TOKEN_CODE = "import FungibleToken from 0xf233dcee88fe0abe\n\naccess(all) contract FlowToken {}\n"
FUNGIBLE_TOKEN_CODE = "access(all) contract interface FungibleToken {}\n"


def _sha256(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def _installer(manifest, gateways, prompter, console, **kwargs) -> DependencyInstaller:
    return DependencyInstaller(manifest, gateways, prompter, console=console, **kwargs)


@pytest.fixture
def testnet(make_gateway):
    """Testnet gateway holding the Hello contract."""
    return make_gateway({HELLO_ADDRESS: {"Hello": HELLO_CODE}})


@pytest.fixture
def emulator(make_gateway):
    """Emulator gateway where Foo at 0x01 imports Bar at 0x02."""
    return make_gateway({"0x01": {"Foo": FOO_CODE}, "0x02": {"Bar": BAR_CODE}})


class TestAddBySourceString:
    """Test installing a single contract."""

    def test_installs_contract(self, manifest, memory_fs, testnet, prompter, console):
        """Test that the file, hash and aliases are recorded."""
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert memory_fs.read_file(f"imports/{HELLO_ADDRESS}/Hello.cdc") == HELLO_CODE.encode("utf-8")
        dependency = manifest.dependencies["Hello"]
        assert dependency.source == Source("testnet", HELLO_ADDRESS, "Hello")
        assert dependency.hash == _sha256(HELLO_CODE)
        assert dependency.aliases == {"testnet": HELLO_ADDRESS}

        saved = json.loads(memory_fs.read_file("flow.json"))
        assert saved["dependencies"]["Hello"] == {
            "source": {"network": "testnet", "address": HELLO_ADDRESS, "contract": "Hello"},
            "hash": _sha256(HELLO_CODE),
            "aliases": {"testnet": HELLO_ADDRESS},
        }

    def test_prompts_before_writing(self, manifest, testnet, prompter, console):
        """Test that a new contract asks for a deployment account and an alias."""
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert len(prompter.asked) == 2
        assert "deploy Hello" in prompter.asked[0]
        assert "alias address for Hello on mainnet" in prompter.asked[1]
        assert manifest.deployments == []

    def test_custom_name(self, manifest, testnet, prompter, console):
        """Test that a dependency can be given a different name."""
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello", name="Greeter")

        assert list(manifest.dependencies) == ["Greeter"]
        assert manifest.dependencies["Greeter"].source.contract == "Hello"

    def test_deployment_and_alias_answers(self, manifest, testnet, console, make_prompter):
        """Test that the chosen account and alias are recorded."""
        prompter = make_prompter(selections=["emulator-account"], addresses=["0x0a"])
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert manifest.get_deployment("emulator", "emulator-account").contracts == ["Hello"]
        assert manifest.dependencies["Hello"].aliases == {
            "testnet": HELLO_ADDRESS,
            "mainnet": "000000000000000a",
        }
        assert "✅ Hello added to emulator deployments" in installer.logs.state_updates
        assert "✅ Alias added for Hello on mainnet" in installer.logs.state_updates

    def test_skip_flags(self, manifest, testnet, prompter, console):
        """Test that skip flags suppress both prompts."""
        installer = _installer(
            manifest, {"testnet": testnet}, prompter, console, skip_deployments=True, skip_alias=True
        )

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert prompter.asked == []

    def test_no_accounts_skips_deployment_prompt(self, memory_fs, testnet, prompter, console):
        """Test that a manifest without accounts is not asked for a deployment."""
        manifest = Manifest.default("flow.json", memory_fs)
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert len(prompter.asked) == 1
        assert "alias" in prompter.asked[0]

    def test_summary_is_printed(self, manifest, testnet, prompter, console, console_output):
        """Test the categorized summary."""
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        output = console_output.getvalue()
        assert "📝 Dependency Manager Actions Summary" in output
        assert f"✅ Contract Hello from {HELLO_ADDRESS} on testnet installed" in output
        assert "✅ Hello added to flow.json" in output
        assert "Zero changes" not in output

    def test_without_saving(self, manifest, memory_fs, testnet, prompter, console):
        """Test that save_state=False leaves flow.json alone."""
        installer = _installer(manifest, {"testnet": testnet}, prompter, console, save_state=False)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert "Hello" in manifest.dependencies
        assert not memory_fs.exists("flow.json")


class TestTransitiveInstall:
    """Test following address imports."""

    def test_installs_imports(self, manifest, memory_fs, emulator, prompter, console):
        """Test that imported contracts are installed and imports rewritten."""
        installer = _installer(manifest, {"emulator": emulator}, prompter, console)

        installer.add_by_source_string("emulator://0x01.Foo")

        assert emulator.calls == ["0000000000000001", "0000000000000002"]
        assert list(manifest.dependencies) == ["Foo", "Bar"]
        assert manifest.dependencies["Bar"].source.address == "0000000000000002"
        assert memory_fs.read_file("imports/0000000000000001/Foo.cdc") == (
            b'import "Bar"\n\naccess(all) contract Foo {}\n'
        )
        assert memory_fs.read_file("imports/0000000000000002/Bar.cdc") == BAR_CODE.encode("utf-8")
        # The hash covers the code as fetched, not as written
        assert manifest.dependencies["Foo"].hash == _sha256(FOO_CODE)

    def test_self_import_terminates(self, manifest, prompter, console, make_gateway):
        """Test that a contract importing itself is fetched once."""
        gateway = make_gateway({"0x01": {"A": "import A from 0x01\naccess(all) contract A {}\n"}})
        installer = _installer(manifest, {"emulator": gateway}, prompter, console)

        installer.add_by_source_string("emulator://0x01.A")

        assert gateway.calls == ["0000000000000001"]
        assert list(manifest.dependencies) == ["A"]

    def test_string_imports_are_not_followed(self, manifest, prompter, console, make_gateway):
        """Test that name imports are left to the manifest."""
        gateway = make_gateway({"0x01": {"A": 'import "FungibleToken"\naccess(all) contract A {}\n'}})
        installer = _installer(manifest, {"emulator": gateway}, prompter, console)

        installer.add_by_source_string("emulator://0x01.A")

        assert gateway.calls == ["0000000000000001"]

    def test_alias_cache_is_reused(self, manifest, console, make_gateway, make_prompter):
        """Test that one alias answer covers every contract of the same account."""
        gateway = make_gateway(
            {
                "0x0a": {
                    "A": "import B from 0x0a\naccess(all) contract A {}\n",
                    "B": "access(all) contract B {}\n",
                }
            }
        )
        prompter = make_prompter(addresses=["0x0b"])
        installer = _installer(manifest, {"mainnet": gateway}, prompter, console, skip_deployments=True)

        installer.add_by_source_string("mainnet://0x0a.A")

        assert len(prompter.asked) == 1
        assert manifest.dependencies["A"].aliases["testnet"] == "000000000000000b"
        assert manifest.dependencies["B"].aliases["testnet"] == "000000000000000b"

    def test_core_contracts_skip_prompts(self, manifest, memory_fs, prompter, console, make_gateway):
        """Test that system contracts are installed without prompts."""
        gateway = make_gateway(
            {
                "1654653399040a61": {"FlowToken": FLOW_TOKEN_CODE},
                "f233dcee88fe0abe": {"FungibleToken": FUNGIBLE_TOKEN_CODE},
            }
        )
        installer = _installer(manifest, {"mainnet": gateway}, prompter, console)

        installer.add_by_core_contract_name("FlowToken")

        assert prompter.asked == []
        assert list(manifest.dependencies) == ["FlowToken", "FungibleToken"]
        assert memory_fs.exists("imports/f233dcee88fe0abe/FungibleToken.cdc")

    def test_add_all_by_network_address(self, manifest, prompter, console, make_gateway):
        """Test installing every contract of an account."""
        gateway = make_gateway(
            {"0x0a": {"A": "access(all) contract A {}\n", "B": "access(all) contract B {}\n"}}
        )
        installer = _installer(manifest, {"emulator": gateway}, prompter, console)

        installer.add_all_by_network_address("emulator", "0x0a")

        assert list(manifest.dependencies) == ["A", "B"]


class TestInstall:
    """Test installing the dependencies recorded in flow.json."""

    def _seed(self, manifest, memory_fs, testnet, prompter, console) -> bytes:
        _installer(manifest, {"testnet": testnet}, prompter, console).add_by_source_string(
            f"testnet://{HELLO_ADDRESS}.Hello"
        )
        return memory_fs.read_file("flow.json")

    def test_reinstall_changes_nothing(
        self, manifest, memory_fs, testnet, console, console_output, make_prompter
    ):
        """Test that installing an up-to-date project is a no-op."""
        saved = self._seed(manifest, memory_fs, testnet, make_prompter(), console)
        console_output.truncate(0)
        console_output.seek(0)
        prompter = make_prompter()

        loaded = Manifest.load("flow.json", memory_fs)
        _installer(loaded, {"testnet": testnet}, prompter, console).install()

        assert memory_fs.read_file("flow.json") == saved
        assert prompter.asked == []
        assert "👍 Zero changes were made. Everything looks good." in console_output.getvalue()

    def test_missing_file_is_restored(self, manifest, memory_fs, testnet, console, make_prompter):
        """Test that a deleted contract file is written again."""
        self._seed(manifest, memory_fs, testnet, make_prompter(), console)
        del memory_fs.files[f"imports/{HELLO_ADDRESS}/Hello.cdc"]

        loaded = Manifest.load("flow.json", memory_fs)
        _installer(loaded, {"testnet": testnet}, make_prompter(), console).install()

        assert memory_fs.read_file(f"imports/{HELLO_ADDRESS}/Hello.cdc") == HELLO_CODE.encode("utf-8")

    def test_changed_contract_is_updated_when_confirmed(
        self, manifest, memory_fs, testnet, console, make_prompter
    ):
        """Test that accepting the update prompt rewrites file and hash."""
        self._seed(manifest, memory_fs, testnet, make_prompter(), console)
        new_code = HELLO_CODE + "// v2\n"
        testnet.set_account(HELLO_ADDRESS, {"Hello": new_code})
        prompter = make_prompter(confirms=[True])

        loaded = Manifest.load("flow.json", memory_fs)
        installer = _installer(loaded, {"testnet": testnet}, prompter, console)
        installer.install()

        assert "different from the one you have locally" in prompter.asked[0]
        assert memory_fs.read_file(f"imports/{HELLO_ADDRESS}/Hello.cdc") == new_code.encode("utf-8")
        assert Manifest.load("flow.json", memory_fs).dependencies["Hello"].hash == _sha256(new_code)
        assert f"✅ Contract Hello from {HELLO_ADDRESS} on testnet updated" in installer.logs.file_system_actions
        assert "✅ Hello updated in flow.json" in installer.logs.state_updates

    def test_changed_contract_is_kept_when_declined(
        self, manifest, memory_fs, testnet, console, make_prompter
    ):
        """Test that declining the update prompt keeps file and hash."""
        self._seed(manifest, memory_fs, testnet, make_prompter(), console)
        testnet.set_account(HELLO_ADDRESS, {"Hello": HELLO_CODE + "// v2\n"})

        loaded = Manifest.load("flow.json", memory_fs)
        _installer(loaded, {"testnet": testnet}, make_prompter(confirms=[False]), console).install()

        assert memory_fs.read_file(f"imports/{HELLO_ADDRESS}/Hello.cdc") == HELLO_CODE.encode("utf-8")
        assert Manifest.load("flow.json", memory_fs).dependencies["Hello"].hash == _sha256(HELLO_CODE)


class TestInstallErrors:
    """Test fatal installer errors."""

    def test_conflicting_source(self, manifest, memory_fs, testnet, prompter, console):
        """Test that a name bound to another source is not overwritten."""
        manifest.add_or_update_dependency(
            Dependency(name="Hello", source=Source("testnet", "0000000000000001", "Hello"))
        )
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        with pytest.raises(RemoteSourceConflictError):
            installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert not memory_fs.exists("flow.json")

    def test_account_without_contracts(self, manifest, prompter, console, make_gateway):
        """Test that an empty account raises NoContractsError."""
        installer = _installer(manifest, {"emulator": make_gateway({"0x01": {}})}, prompter, console)

        with pytest.raises(NoContractsError):
            installer.add_by_source_string("emulator://0x01.Foo")

    def test_missing_contract(self, manifest, emulator, prompter, console):
        """Test that a contract missing from the account raises ContractNotFoundError."""
        installer = _installer(manifest, {"emulator": emulator}, prompter, console)

        with pytest.raises(ContractNotFoundError):
            installer.add_by_source_string("emulator://0x01.Missing")

    def test_unknown_network(self, manifest, prompter, console):
        """Test that a network without a gateway raises NetworkNotFoundError."""
        installer = _installer(manifest, {}, prompter, console)

        with pytest.raises(NetworkNotFoundError):
            installer.add_by_source_string("testnet://0x01.Foo")

    def test_unparsable_imports(self, manifest, prompter, console, make_gateway):
        """Test that a malformed import section raises ParseFailedError."""
        gateway = make_gateway({"0x01": {"Foo": "import A, B\naccess(all) contract Foo {}\n"}})
        installer = _installer(manifest, {"emulator": gateway}, prompter, console)

        with pytest.raises(ParseFailedError):
            installer.add_by_source_string("emulator://0x01.Foo")

    def test_not_a_core_contract(self, manifest, prompter, console):
        """Test that an unknown core contract name is rejected."""
        installer = _installer(manifest, {}, prompter, console)

        with pytest.raises(ContractNotFoundError):
            installer.add_by_core_contract_name("Hello")

    def test_name_collision_is_reported(self, manifest, testnet, prompter, console, console_output):
        """Test that a dependency named like a user contract is flagged."""
        manifest.add_or_update_contract(Contract(name="Hello", location="contracts/Hello.cdc"))
        installer = _installer(manifest, {"testnet": testnet}, prompter, console)

        installer.add_by_source_string(f"testnet://{HELLO_ADDRESS}.Hello")

        assert "❌ Contract named Hello already exists in flow.json" in console_output.getvalue()


class TestCategorizedLogs:
    """Test the summary rendering."""

    def test_empty(self):
        """Test the summary without changes."""
        assert CategorizedLogs().render() == [
            "📝 Dependency Manager Actions Summary",
            "",
            "👍 Zero changes were made. Everything looks good.",
        ]

    def test_sections(self):
        """Test that only non-empty sections are rendered."""
        logs = CategorizedLogs(file_system_actions=["a"], issues=["b"])

        assert logs.render() == [
            "📝 Dependency Manager Actions Summary",
            "",
            "🗃️ File System Actions:",
            "a",
            "",
            "⚠️ Issues:",
            "b",
            "",
        ]

    def test_hash_contract(self):
        """Test that hashes are SHA-256 hex digests."""
        assert hash_contract(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
