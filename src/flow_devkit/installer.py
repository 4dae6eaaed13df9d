"""Transitive installer for on-chain Cadence contract dependencies."""

import hashlib
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from rich.console import Console
from rich.markup import escape

from .cadence.errors import ParserError
from .cadence.imports import analyze_imports, rewrite_address_imports
from .constants import ALIAS_NETWORK_FOR, EMULATOR
from .exceptions import (
    ContractNotFoundError,
    NetworkNotFoundError,
    NoContractsError,
    ParseFailedError,
    PromptCancelledError,
    RemoteSourceConflictError,
)
from .gateway import Gateway
from .manifest import Manifest
from .parsers import addresses_equal, build_source_string, normalize_address, parse_source_string
from .paths import dependency_file_path
from .prompts import Prompter
from .sections import get_core_contract, is_core_contract
from .types import Dependency, Source

logger = logging.getLogger(__name__)

NO_DEPLOYMENT = "none"


def _with_emoji(emoji: str, message: str) -> str:
    return f"{emoji} {message}"


@dataclass
class CategorizedLogs:
    """Summary of what one installer operation did."""

    file_system_actions: List[str] = field(default_factory=list)
    state_updates: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def has_changes(self) -> bool:
        return bool(self.file_system_actions or self.state_updates)

    def render(self) -> List[str]:
        """Return the summary as lines, one section per category."""
        lines = [_with_emoji("📝", "Dependency Manager Actions Summary"), ""]

        for emoji, title, messages in (
            ("🗃️", "File System Actions:", self.file_system_actions),
            ("💾", "State Updates:", self.state_updates),
            ("⚠️", "Issues:", self.issues),
        ):
            if messages:
                lines.append(_with_emoji(emoji, title))
                lines.extend(messages)
                lines.append("")

        if not self.has_changes():
            lines.append(_with_emoji("👍", "Zero changes were made. Everything looks good."))

        return lines

    def log_all(self, console: Console) -> None:
        for line in self.render():
            console.print(escape(line))


def hash_contract(code: bytes) -> str:
    """Return the SHA-256 hex digest of contract code as fetched from the chain."""
    return hashlib.sha256(code).hexdigest()


class DependencyInstaller:
    """
    Fetches contracts and their address imports, writes them under imports/
    and records them in the manifest.

    One instance carries the de-duplication set, the alias cache and the
    summary logs of a single command.
    """

    def __init__(
        self,
        manifest: Manifest,
        gateways: Mapping[str, Gateway],
        prompter: Prompter,
        console: Optional[Console] = None,
        save_state: bool = True,
        target_dir: Optional[str] = None,
        skip_deployments: bool = False,
        skip_alias: bool = False,
    ):
        self.manifest = manifest
        self.fs = manifest.fs
        self.gateways = gateways
        self.prompter = prompter
        self.console = console if console is not None else Console()
        self.save_state = save_state
        self.target_dir = target_dir if target_dir is not None else str(manifest.directory)
        self.skip_deployments = skip_deployments
        self.skip_alias = skip_alias

        self.logs = CategorizedLogs()
        # source string -> dependency processed during this run
        self.dependencies: Dict[str, Dependency] = {}
        # alias network -> (source account address -> alias address)
        self.alias_cache: Dict[str, Dict[str, str]] = {}

    # Public operations

    def install(self) -> None:
        """
        Install every dependency declared in the manifest, and their imports.

        Raises:
            DevkitError: On the first fatal error; the manifest is not saved
        """
        seeds = list(self.manifest.dependencies.values())
        self._run(lambda: self._process_all(seeds))

    def add(self, dependency: Dependency) -> None:
        """Install one dependency and its imports, adding it to the manifest."""
        self._run(lambda: self._process_dependency(dependency))

    def add_many(self, dependencies: List[Dependency]) -> None:
        """Install several dependencies with a single summary and save."""
        self._run(lambda: self._process_all(dependencies))

    def add_by_source_string(self, source: str, name: Optional[str] = None) -> None:
        """
        Install a dependency given as network://address.Contract.

        Args:
            source: Source string
            name: Dependency name (defaults to the contract name)

        Raises:
            InvalidSourceStringError: If the source string is malformed
        """
        parsed = parse_source_string(source)
        self.add(Dependency(name=name or parsed.contract, source=parsed))

    def add_by_core_contract_name(self, name: str) -> None:
        """
        Install a system contract by name, from mainnet.

        Raises:
            ContractNotFoundError: If the name is not a system contract
        """
        core = get_core_contract(name)
        if core is None:
            raise ContractNotFoundError(f"{name!r} is not a core contract")
        network, address = next(iter(core.addresses.items()))
        self.add(Dependency(name=name, source=Source(network=network, address=address, contract=name)))

    def add_all_by_network_address(self, network: str, address: str) -> None:
        """
        Install every contract held by an account.

        Raises:
            NetworkNotFoundError: If there is no gateway for the network
            NoContractsError: If the account holds no contracts
        """

        def process():
            account = self._gateway(network).get_account(address)
            if not account.contracts:
                raise NoContractsError(f"No contracts found at 0x{normalize_address(address)} on {network}")
            for contract_name in account.contracts:
                self._process_dependency(
                    Dependency(
                        name=contract_name,
                        source=Source(network=network, address=normalize_address(address), contract=contract_name),
                    )
                )

        self._run(process)

    # Orchestration

    def _run(self, action: Callable[[], None]) -> None:
        try:
            action()
            self._check_for_conflicting_contracts()
            if self.save_state:
                self.manifest.save()
        finally:
            self.logs.log_all(self.console)

    def _process_all(self, dependencies: List[Dependency]) -> None:
        for dependency in dependencies:
            self._process_dependency(dependency)

    def _process_dependency(self, dependency: Dependency) -> None:
        self._fetch_dependencies(
            dependency.source.network,
            normalize_address(dependency.source.address),
            dependency.name,
            dependency.source.contract,
        )

    def _gateway(self, network: str) -> Gateway:
        gateway = self.gateways.get(network)
        if gateway is None:
            raise NetworkNotFoundError(f"No gateway configured for network {network!r}")
        return gateway

    def _fetch_dependencies(self, network: str, address: str, assigned_name: str, contract_name: str) -> None:
        source_string = build_source_string(network, address, contract_name)

        # Skip already processed dependencies
        if source_string in self.dependencies:
            logger.debug(f"Skipping {source_string}, already processed")
            return
        self.dependencies[source_string] = Dependency(
            name=assigned_name, source=Source(network=network, address=address, contract=contract_name)
        )

        logger.debug(f"Fetching {source_string} as {assigned_name}")
        account = self._gateway(network).get_account(address)
        if not account.contracts:
            raise NoContractsError(f"No contracts found at 0x{address} on {network}")

        code = account.contracts.get(contract_name)
        if code is None:
            raise ContractNotFoundError(f"Contract {contract_name} not found for account 0x{address} on {network}")

        try:
            analysis = analyze_imports(code)
        except ParserError as e:
            raise ParseFailedError(f"Failed to parse contract {contract_name} from 0x{address} on {network}: {e}") from e

        self._handle_found_contract(network, address, assigned_name, contract_name, code)

        # Only address imports are followed; name imports are resolved by the manifest
        for address_import in analysis.address_imports:
            for identifier in address_import.identifiers:
                self._fetch_dependencies(network, address_import.address, identifier, identifier)

    # Per-contract handling

    def _contract_file(self, address: str, contract_name: str) -> str:
        return posixpath.join(self.target_dir.replace("\\", "/"), dependency_file_path(address, contract_name))

    def _handle_found_contract(
        self, network: str, address: str, assigned_name: str, contract_name: str, code: bytes
    ) -> None:
        original_hash = hash_contract(code)
        existing = self.manifest.get_dependency(assigned_name)

        # A dependency by this name pointing elsewhere needs manual reconciliation
        if existing is not None and (
            existing.source.network != network or not addresses_equal(existing.source.address, address)
        ):
            raise RemoteSourceConflictError(
                f"A dependency named {assigned_name} already exists with a different remote source "
                f"({existing.source.source_string}). Please fix the conflict and retry."
            )

        updated = False
        if existing is not None and existing.hash and existing.hash != original_hash:
            message = (
                f"The latest version of {contract_name} is different from the one you have locally. "
                "Do you want to update it?"
            )
            if not self._ask_confirm(message):
                logger.debug(f"Keeping local version of {assigned_name}")
                return
            updated = True

        path = self._contract_file(address, contract_name)
        is_new_file = not self.fs.exists(path)

        # Prompts happen before the file is written
        aliases: Dict[str, str] = {}
        if is_new_file and not is_core_contract(contract_name):
            if not self.skip_deployments:
                self._update_dependency_deployment(assigned_name)
            if not self.skip_alias:
                aliases = self._update_dependency_alias(contract_name, network, address)

        if is_new_file or updated:
            self.fs.mkdir_all(posixpath.dirname(path))
            self.fs.write_file(path, rewrite_address_imports(code))
            verb = "installed" if is_new_file else "updated"
            self.logs.file_system_actions.append(
                _with_emoji("✅", f"Contract {contract_name} from {address} on {network} {verb}")
            )

        self._update_dependency_state(network, address, assigned_name, contract_name, original_hash, aliases)

    def _update_dependency_state(
        self,
        network: str,
        address: str,
        assigned_name: str,
        contract_name: str,
        contract_hash: str,
        aliases: Dict[str, str],
    ) -> None:
        existing = self.manifest.get_dependency(assigned_name)

        if existing is None:
            dependency = Dependency(
                name=assigned_name,
                source=Source(network=network, address=address, contract=contract_name),
                hash=contract_hash,
                aliases={network: address},
            )
            dependency.aliases.update(aliases)
            self.manifest.add_or_update_dependency(dependency)
            self.logs.state_updates.append(_with_emoji("✅", f"{assigned_name} added to flow.json"))
            return

        changed = existing.hash != contract_hash
        existing.hash = contract_hash
        for alias_network, alias_address in aliases.items():
            if existing.aliases.get(alias_network) != alias_address:
                existing.aliases[alias_network] = alias_address
                changed = True
        self.manifest.add_or_update_dependency(existing)
        if changed:
            self.logs.state_updates.append(_with_emoji("✅", f"{assigned_name} updated in flow.json"))

    def _update_dependency_deployment(self, contract_name: str) -> None:
        accounts = self.manifest.account_names()
        if not accounts:
            logger.debug(f"No accounts to deploy {contract_name} to")
            return

        message = f"Choose an account to deploy {contract_name} to on {EMULATOR}, or {NO_DEPLOYMENT} to skip"
        try:
            account = self.prompter.select(message, accounts + [NO_DEPLOYMENT])
        except PromptCancelledError:
            return
        if account == NO_DEPLOYMENT:
            return

        self.manifest.add_contract_to_deployment(EMULATOR, account, contract_name)
        self.logs.state_updates.append(_with_emoji("✅", f"{contract_name} added to {EMULATOR} deployments"))

    def _update_dependency_alias(self, contract_name: str, network: str, address: str) -> Dict[str, str]:
        aliases: Dict[str, str] = {}
        alias_network = ALIAS_NETWORK_FOR.get(network)
        if alias_network is None:
            return aliases

        # Reuse an alias given earlier for another contract on the same account
        cached = self.alias_cache.get(alias_network, {}).get(address)
        if cached is not None:
            aliases[alias_network] = cached
        else:
            label = (
                f"Enter an alias address for {contract_name} on {alias_network} if you have one, "
                "otherwise leave blank"
            )
            try:
                answer = self.prompter.address(label)
            except PromptCancelledError:
                answer = None
            if not answer:
                return aliases
            aliases[alias_network] = normalize_address(answer)
            self.alias_cache.setdefault(alias_network, {})[address] = aliases[alias_network]

        self.logs.state_updates.append(_with_emoji("✅", f"Alias added for {contract_name} on {alias_network}"))
        return aliases

    def _ask_confirm(self, message: str) -> bool:
        try:
            return self.prompter.confirm(message)
        except PromptCancelledError:
            return False

    def _check_for_conflicting_contracts(self) -> None:
        for dependency in self.dependencies.values():
            contract = self.manifest.contracts.get(dependency.name)
            if contract is not None and not contract.is_dependency:
                self.logs.issues.append(
                    _with_emoji("❌", f"Contract named {dependency.name} already exists in flow.json")
                )
