"""Project manifest (flow.json) loading, validation and saving."""

import json
import logging
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .constants import DEFAULT_NETWORKS
from .exceptions import (
    ContractNotFoundError,
    InvalidSourceStringError,
    ManifestError,
    ManifestNotFoundError,
)
from .filesystem import FileSystem, OSFileSystem
from .parsers import addresses_equal, normalize_address, parse_source_string
from .paths import dependency_file_path, normalize_location
from .types import Account, Contract, Deployment, Dependency, Network, Source

logger = logging.getLogger(__name__)

SECTIONS = ("networks", "accounts", "contracts", "deployments", "dependencies")


class Manifest:
    """
    In-memory view of a project manifest.

    Sections keep their insertion order so that saving produces stable diffs.
    Contract records for dependencies are derived from the dependencies
    section and are never written to the contracts section.
    """

    def __init__(self, path: Union[Path, str] = "flow.json", fs: Optional[FileSystem] = None):
        self.path = Path(path)
        self.fs = fs if fs is not None else OSFileSystem()
        self.networks: Dict[str, Network] = {}
        self.accounts: Dict[str, Account] = {}
        self.contracts: Dict[str, Contract] = {}
        self.deployments: List[Deployment] = []
        self.dependencies: Dict[str, Dependency] = {}
        self.extra: Dict[str, Any] = {}

    @property
    def directory(self) -> Path:
        """Directory holding the manifest; relative locations resolve against it."""
        return self.path.parent

    # Loading and saving

    @classmethod
    def load(cls, path: Union[Path, str], fs: Optional[FileSystem] = None) -> "Manifest":
        """
        Load and validate a manifest file.

        Args:
            path: Path to flow.json
            fs: File system to read from (defaults to the local disk)

        Returns:
            Manifest instance

        Raises:
            ManifestNotFoundError: If the file does not exist
            ManifestError: If the file is not valid JSON or fails validation
        """
        fs = fs if fs is not None else OSFileSystem()
        if not fs.exists(path):
            raise ManifestNotFoundError(f"Project manifest not found: {path}")

        raw = fs.read_file(path)
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(f"Invalid JSON in {path}: {e}") from e

        logger.debug(f"Loaded manifest from {path}")
        return cls.from_dict(data, path=path, fs=fs)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], path: Union[Path, str] = "flow.json", fs: Optional[FileSystem] = None
    ) -> "Manifest":
        """
        Build a manifest from its JSON document.

        Args:
            data: Parsed JSON document
            path: Path the manifest is saved to
            fs: File system used by save()

        Returns:
            Validated Manifest instance

        Raises:
            ManifestError: If a section is malformed or validation fails
        """
        if not isinstance(data, dict):
            raise ManifestError("Manifest must be a JSON object")

        manifest = cls(path, fs)
        manifest._read_networks(data.get("networks") or {})
        manifest._read_accounts(data.get("accounts") or {})
        manifest._read_contracts(data.get("contracts") or {})
        manifest._read_deployments(data.get("deployments") or {})
        manifest._read_dependencies(data.get("dependencies") or {})

        # Preserve unknown top-level keys after the known sections
        for key, value in data.items():
            if key not in SECTIONS:
                manifest.extra[key] = value

        manifest.validate()
        return manifest

    @classmethod
    def default(cls, path: Union[Path, str] = "flow.json", fs: Optional[FileSystem] = None) -> "Manifest":
        """Create an empty manifest with the standard networks."""
        manifest = cls(path, fs)
        for name, host in DEFAULT_NETWORKS.items():
            manifest.networks[name] = Network(name=name, host=host)
        return manifest

    def save(self) -> None:
        """
        Write the manifest to its path.

        Raises:
            FileSystemError: If the file cannot be written
        """
        self.fs.mkdir_all(self.directory)
        self.fs.write_file(self.path, self.dumps().encode("utf-8"))
        logger.debug(f"Saved manifest to {self.path}")

    def dumps(self) -> str:
        """Serialize the manifest in canonical form."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        """Build the JSON document in canonical section order."""
        data: Dict[str, Any] = {}

        if self.networks:
            data["networks"] = {}
            for name, network in self.networks.items():
                if network.key:
                    data["networks"][name] = {"host": network.host, "key": network.key}
                else:
                    data["networks"][name] = network.host

        if self.accounts:
            data["accounts"] = {}
            for name, account in self.accounts.items():
                entry: Dict[str, Any] = {"address": account.address}
                if account.key is not None:
                    entry["key"] = account.key
                data["accounts"][name] = entry

        if self.contracts:
            data["contracts"] = {}
            for name, contract in self.contracts.items():
                if contract.aliases:
                    data["contracts"][name] = {"source": contract.location, "aliases": dict(contract.aliases)}
                else:
                    data["contracts"][name] = contract.location

        if self.deployments:
            data["deployments"] = {}
            for deployment in self.deployments:
                entries: List[Any] = []
                for contract_name in deployment.contracts:
                    if contract_name in deployment.args:
                        entries.append({"name": contract_name, "args": deployment.args[contract_name]})
                    else:
                        entries.append(contract_name)
                data["deployments"].setdefault(deployment.network, {})[deployment.account] = entries

        if self.dependencies:
            data["dependencies"] = {}
            for name, dependency in self.dependencies.items():
                entry = {
                    "source": {
                        "network": dependency.source.network,
                        "address": dependency.source.address,
                        "contract": dependency.source.contract,
                    }
                }
                if dependency.hash:
                    entry["hash"] = dependency.hash
                if dependency.aliases:
                    entry["aliases"] = dict(dependency.aliases)
                data["dependencies"][name] = entry

        data.update(self.extra)
        return data

    # Section readers

    def _read_networks(self, section: Dict[str, Any]) -> None:
        for name, value in _section(section, "networks").items():
            if isinstance(value, str):
                self.networks[name] = Network(name=name, host=value)
            elif isinstance(value, dict) and isinstance(value.get("host"), str):
                self.networks[name] = Network(name=name, host=value["host"], key=value.get("key"))
            else:
                raise ManifestError(f"Invalid network {name!r}: expected a host string or {{host, key}}")

    def _read_accounts(self, section: Dict[str, Any]) -> None:
        for name, value in _section(section, "accounts").items():
            if not isinstance(value, dict) or not isinstance(value.get("address"), str):
                raise ManifestError(f"Invalid account {name!r}: expected {{address, key}}")
            self.accounts[name] = Account(name=name, address=value["address"], key=value.get("key"))

    def _read_contracts(self, section: Dict[str, Any]) -> None:
        for name, value in _section(section, "contracts").items():
            if isinstance(value, str):
                self.contracts[name] = Contract(name=name, location=value)
            elif isinstance(value, dict) and isinstance(value.get("source"), str):
                aliases = value.get("aliases") or {}
                if not isinstance(aliases, dict):
                    raise ManifestError(f"Invalid aliases for contract {name!r}")
                self.contracts[name] = Contract(name=name, location=value["source"], aliases=dict(aliases))
            else:
                raise ManifestError(f"Invalid contract {name!r}: expected a path or {{source, aliases}}")

    def _read_deployments(self, section: Dict[str, Any]) -> None:
        for network, accounts in _section(section, "deployments").items():
            if not isinstance(accounts, dict):
                raise ManifestError(f"Invalid deployments for network {network!r}")
            for account, contracts in accounts.items():
                if not isinstance(contracts, list):
                    raise ManifestError(f"Invalid deployment {network}/{account}: expected a list")
                deployment = Deployment(network=network, account=account)
                for entry in contracts:
                    if isinstance(entry, str):
                        deployment.contracts.append(entry)
                    elif isinstance(entry, dict) and isinstance(entry.get("name"), str):
                        deployment.contracts.append(entry["name"])
                        if "args" in entry:
                            deployment.args[entry["name"]] = entry["args"]
                    else:
                        raise ManifestError(f"Invalid deployment entry in {network}/{account}: {entry!r}")
                self.deployments.append(deployment)

    def _read_dependencies(self, section: Dict[str, Any]) -> None:
        for name, value in _section(section, "dependencies").items():
            try:
                if isinstance(value, str):
                    dependency = Dependency(name=name, source=parse_source_string(value))
                elif isinstance(value, dict):
                    dependency = Dependency(
                        name=name,
                        source=_read_source(value.get("source")),
                        hash=value.get("hash") or "",
                        aliases=dict(value.get("aliases") or {}),
                    )
                else:
                    raise ManifestError(f"Invalid dependency {name!r}")
            except InvalidSourceStringError as e:
                raise ManifestError(f"Error parsing source for dependency {name!r}: {e}") from e
            self.dependencies[name] = dependency

    # Validation

    def is_known_network(self, name: str) -> bool:
        """Return True if the network is declared or is a standard network."""
        return name in self.networks or name in DEFAULT_NETWORKS

    def validate(self) -> None:
        """
        Check cross-section invariants.

        Raises:
            ManifestError: If a deployment names an unknown contract or a
                dependency names an unknown network
        """
        for deployment in self.deployments:
            for contract_name in deployment.contracts:
                if self.get_contract(contract_name) is None:
                    raise ManifestError(
                        f"Deployment {deployment.network}/{deployment.account} references "
                        f"unknown contract {contract_name!r}"
                    )

        for dependency in self.dependencies.values():
            if not self.is_known_network(dependency.source.network):
                raise ManifestError(
                    f"Dependency {dependency.name!r} uses unknown network {dependency.source.network!r}"
                )

    # Networks

    def get_network(self, name: str) -> Optional[Network]:
        return self.networks.get(name)

    def add_or_update_network(self, network: Network) -> None:
        self.networks[network.name] = network

    def remove_network(self, name: str) -> None:
        """
        Remove a network.

        Raises:
            ManifestError: If the network is unknown or still referenced by an
                alias, a deployment or a dependency source
        """
        if name not in self.networks:
            raise ManifestError(f"Network {name!r} does not exist")

        for contract in self.all_contracts():
            if name in contract.aliases:
                raise ManifestError(f"Network {name!r} is used by an alias of contract {contract.name!r}")
        for deployment in self.deployments:
            if deployment.network == name:
                raise ManifestError(f"Network {name!r} is used by deployment {name}/{deployment.account}")
        for dependency in self.dependencies.values():
            if dependency.source.network == name or name in dependency.aliases:
                raise ManifestError(f"Network {name!r} is used by dependency {dependency.name!r}")

        del self.networks[name]

    # Accounts

    def get_account(self, name: str) -> Optional[Account]:
        return self.accounts.get(name)

    def add_or_update_account(self, account: Account) -> None:
        self.accounts[account.name] = account

    def remove_account(self, name: str) -> None:
        if name not in self.accounts:
            raise ManifestError(f"Account {name!r} does not exist")
        for deployment in self.deployments:
            if deployment.account == name:
                raise ManifestError(f"Account {name!r} is used by deployment {deployment.network}/{name}")
        del self.accounts[name]

    def account_names(self) -> List[str]:
        return list(self.accounts)

    # Contracts

    def dependency_contract(self, dependency: Dependency) -> Contract:
        """Derive the contract record backing a dependency."""
        aliases = dict(dependency.aliases)
        aliases.setdefault(dependency.source.network, dependency.source.address)
        return Contract(
            name=dependency.name,
            location=dependency_file_path(normalize_address(dependency.source.address), dependency.source.contract),
            aliases=aliases,
            is_dependency=True,
        )

    def all_contracts(self) -> List[Contract]:
        """Return user-authored contracts followed by dependency contracts not shadowed by them."""
        result = list(self.contracts.values())
        for dependency in self.dependencies.values():
            if dependency.name not in self.contracts:
                result.append(self.dependency_contract(dependency))
        return result

    def get_contract(self, name: str) -> Optional[Contract]:
        """Look up a contract by name; a user-authored record shadows a dependency."""
        if name in self.contracts:
            return self.contracts[name]
        if name in self.dependencies:
            return self.dependency_contract(self.dependencies[name])
        return None

    def contract_by_name(self, name: str) -> Contract:
        """
        Look up a contract by name.

        Raises:
            ContractNotFoundError: If no contract of that name exists
        """
        contract = self.get_contract(name)
        if contract is None:
            raise ContractNotFoundError(f"Contract {name!r} not found in {self.path}")
        return contract

    def contract_by_location(self, location: str) -> Optional[Contract]:
        """Find the contract whose source location matches a manifest-relative path."""
        wanted = normalize_location(location)
        for contract in self.all_contracts():
            if normalize_location(contract.location) == wanted:
                return contract
        return None

    def add_or_update_contract(self, contract: Contract) -> None:
        self.contracts[contract.name] = contract

    def remove_contract(self, name: str) -> None:
        if name not in self.contracts:
            raise ManifestError(f"Contract {name!r} does not exist")
        for deployment in self.deployments:
            if name in deployment.contracts:
                raise ManifestError(
                    f"Contract {name!r} is used by deployment {deployment.network}/{deployment.account}"
                )
        del self.contracts[name]

    def contract_path(self, contract: Contract) -> str:
        """Return the contract location joined to the manifest directory."""
        return posixpath.join(str(self.directory).replace("\\", "/"), normalize_location(contract.location))

    # Deployments

    def get_deployment(self, network: str, account: str) -> Optional[Deployment]:
        for deployment in self.deployments:
            if deployment.network == network and deployment.account == account:
                return deployment
        return None

    def add_or_update_deployment(self, deployment: Deployment) -> None:
        for i, existing in enumerate(self.deployments):
            if existing.network == deployment.network and existing.account == deployment.account:
                self.deployments[i] = deployment
                return
        self.deployments.append(deployment)

    def add_contract_to_deployment(self, network: str, account: str, contract_name: str) -> Deployment:
        """
        Add a contract to the deployment for (network, account), creating it if needed.

        Returns:
            The updated deployment
        """
        deployment = self.get_deployment(network, account)
        if deployment is None:
            deployment = Deployment(network=network, account=account)
            self.deployments.append(deployment)
        deployment.add_contract(contract_name)
        return deployment

    # Dependencies

    def get_dependency(self, name: str) -> Optional[Dependency]:
        return self.dependencies.get(name)

    def add_or_update_dependency(self, dependency: Dependency) -> None:
        """Store a dependency; its aliases always include the source network."""
        existing = dependency.aliases.get(dependency.source.network)
        if existing is None or not addresses_equal(existing, dependency.source.address):
            dependency.aliases[dependency.source.network] = dependency.source.address
        self.dependencies[dependency.name] = dependency

    def remove_dependency(self, name: str) -> None:
        if name not in self.dependencies:
            raise ManifestError(f"Dependency {name!r} does not exist")
        del self.dependencies[name]


def _section(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ManifestError(f"Invalid {name} section: expected an object")
    return value


def _read_source(value: Any) -> Source:
    if isinstance(value, str):
        return parse_source_string(value)
    if isinstance(value, dict):
        network = value.get("network")
        address = value.get("address")
        contract = value.get("contract")
        if isinstance(network, str) and isinstance(address, str) and isinstance(contract, str):
            # Validate, but keep the address as written
            parse_source_string(f"{network}://{address}.{contract}")
            return Source(network=network, address=address, contract=contract)
    raise ManifestError(f"Invalid dependency source: {value!r}")
