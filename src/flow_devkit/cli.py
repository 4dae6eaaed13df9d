"""Command line interface for flow-devkit."""

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .constants import MAINNET, TESTNET
from .exceptions import DevkitError, ManifestNotFoundError
from .filesystem import FileSystem, OSFileSystem
from .gateway import Gateway, create_gateways
from .installer import DependencyInstaller
from .linter import Linter
from .manifest import Manifest
from .parsers import is_source_string
from .paths import get_manifest_path
from .prompts import ConsolePrompter, Prompter
from .sections import filter_installed, get_sections
from .settings import Settings
from .types import Dependency, Source

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json", "inline")


def _common_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--config-path", "-f", default=None, help="Path to flow.json (default: ./flow.json)")
    parent.add_argument("--output", "-o", choices=OUTPUT_FORMATS, default="text", help="Output format")
    parent.add_argument("--log-level", default=None, help="Logging level (default: WARNING)")
    return parent


def _install_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--skip-deployments", action="store_true", help="Skip adding the dependency to deployments"
    )
    parent.add_argument("--skip-alias", action="store_true", help="Skip prompting for an alias")
    return parent


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every sub-command."""
    common = _common_options()
    install_options = _install_options()

    parser = argparse.ArgumentParser(prog="flow-devkit", description="Flow developer tools")
    commands = parser.add_subparsers(dest="command", required=True)

    deps = commands.add_parser("dependencies", aliases=["deps"], help="Manage contract dependencies")
    deps_commands = deps.add_subparsers(dest="action", required=True)

    install = deps_commands.add_parser(
        "install", parents=[common, install_options], help="Install the dependencies declared in flow.json"
    )
    install.set_defaults(handler=cmd_install)

    add = deps_commands.add_parser(
        "add", parents=[common, install_options], help="Add a dependency by source string or core contract name"
    )
    add.add_argument("source", help="network://address.Contract, or the name of a core contract")
    add.add_argument("--name", default=None, help="Name to give the dependency (default: contract name)")
    add.set_defaults(handler=cmd_add)

    discover = deps_commands.add_parser(
        "discover", parents=[common, install_options], help="Discover contracts to add to the project"
    )
    discover.set_defaults(handler=cmd_discover)

    list_ = deps_commands.add_parser("list", parents=[common], help="List the dependencies in flow.json")
    list_.set_defaults(handler=cmd_list)

    cadence = commands.add_parser("cadence", help="Cadence tools")
    cadence_commands = cadence.add_subparsers(dest="action", required=True)

    lint = cadence_commands.add_parser("lint", parents=[common], help="Lint Cadence files")
    lint.add_argument("files", nargs="*", help="Files to lint (default: every .cdc file below the current directory)")
    lint.set_defaults(handler=cmd_lint)

    return parser


class Context:
    """Collaborators shared by the command handlers; tests replace them."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fs: Optional[FileSystem] = None,
        console: Optional[Console] = None,
        prompter: Optional[Prompter] = None,
        gateways: Optional[Dict[str, Gateway]] = None,
        cwd: Optional[str] = None,
    ):
        self.settings = settings if settings is not None else Settings.from_env()
        self.fs = fs if fs is not None else OSFileSystem()
        self.console = console if console is not None else Console()
        self.prompter = prompter if prompter is not None else ConsolePrompter(self.console)
        self.gateways = gateways
        self.cwd = cwd if cwd is not None else os.getcwd()

    def manifest_path(self, args: argparse.Namespace) -> str:
        return str(get_manifest_path(args.config_path, self.cwd))

    def load_manifest(self, args: argparse.Namespace, create: bool = False) -> Manifest:
        path = self.manifest_path(args)
        try:
            return Manifest.load(path, self.fs)
        except ManifestNotFoundError:
            if not create:
                raise
            logger.info(f"No manifest at {path}, starting a new one")
            return Manifest.default(path, self.fs)

    def installer(self, args: argparse.Namespace, manifest: Manifest) -> DependencyInstaller:
        gateways = self.gateways
        if gateways is None:
            hosts = {name: network.host for name, network in manifest.networks.items()}
            gateways = create_gateways(hosts, self.settings.timeout, self.settings.host_overrides)
        return DependencyInstaller(
            manifest,
            gateways,
            self.prompter,
            console=self.console,
            skip_deployments=getattr(args, "skip_deployments", False),
            skip_alias=getattr(args, "skip_alias", False),
        )


# Dependencies


def cmd_install(args: argparse.Namespace, ctx: Context) -> int:
    manifest = ctx.load_manifest(args)
    ctx.installer(args, manifest).install()
    return 0


def cmd_add(args: argparse.Namespace, ctx: Context) -> int:
    manifest = ctx.load_manifest(args, create=True)
    installer = ctx.installer(args, manifest)
    if is_source_string(args.source):
        installer.add_by_source_string(args.source, args.name)
    else:
        installer.add_by_core_contract_name(args.source)
    return 0


def cmd_discover(args: argparse.Namespace, ctx: Context) -> int:
    manifest = ctx.load_manifest(args, create=True)
    installed = list(manifest.dependencies)

    available: Dict[str, Dependency] = {}
    known_aliases: Dict[str, str] = {}  # mainnet address -> testnet address
    options: List[str] = []
    total_installed = 0

    for section in get_sections():
        section, section_installed = filter_installed(section, installed)
        total_installed += section_installed
        for contract in section.contracts:
            mainnet_address = contract.address_on(MAINNET)
            if mainnet_address is None:
                continue
            available[contract.name] = Dependency(
                name=contract.name, source=Source(network=MAINNET, address=mainnet_address, contract=contract.name)
            )
            options.append(contract.name)
            testnet_address = contract.address_on(TESTNET)
            if testnet_address is not None:
                known_aliases[mainnet_address] = testnet_address

    if total_installed:
        ctx.console.print(
            f"ℹ️  Note: {total_installed} contracts already installed. "
            "Use 'flow-devkit dependencies list' to view them."
        )
    if not options:
        ctx.console.print("Every known contract is already installed.")
        return 0

    selected = ctx.prompter.multi_select("Select any contracts you would like to install", options)
    dependencies = [available[name] for name in selected]
    if not dependencies:
        return 0

    ctx.console.print("🔄 Installing selected contracts and dependencies...")
    installer = ctx.installer(args, manifest)
    # Known testnet deployments answer the alias prompt
    installer.alias_cache.setdefault(TESTNET, {}).update(known_aliases)
    installer.add_many(dependencies)
    return 0


def cmd_list(args: argparse.Namespace, ctx: Context) -> int:
    try:
        dependencies = list(ctx.load_manifest(args).dependencies.values())
    except ManifestNotFoundError:
        logger.info(f"No manifest at {ctx.manifest_path(args)}")
        dependencies = []

    if args.output == "json":
        data = [
            {
                "name": d.name,
                "network": d.source.network,
                "address": d.source.address,
                "contract": d.source.contract,
                "hash": d.hash,
                "aliases": d.aliases,
            }
            for d in dependencies
        ]
        ctx.console.out(json.dumps(data, indent=2), highlight=False)
        return 0

    if not dependencies:
        ctx.console.print("No dependencies found in flow.json")
        return 0

    table = Table(title="Dependencies")
    table.add_column("Name")
    table.add_column("Network")
    table.add_column("Address")
    table.add_column("Contract")
    for d in dependencies:
        table.add_row(escape(d.name), escape(d.source.network), escape(d.source.address), escape(d.source.contract))
    ctx.console.print(table)
    return 0


# Cadence


def cmd_lint(args: argparse.Namespace, ctx: Context) -> int:
    try:
        manifest: Optional[Manifest] = ctx.load_manifest(args)
    except ManifestNotFoundError:
        manifest = None

    files = args.files
    if not files:
        files = [os.path.relpath(path, ctx.cwd) for path in ctx.fs.list_files(ctx.cwd, ".cdc")]

    results = Linter(ctx.fs, manifest).lint_files(files)

    if args.output == "json":
        ctx.console.out(json.dumps(results.to_json(), indent=2), highlight=False)
    elif args.output == "inline":
        ctx.console.print(results.render_inline())
    else:
        ctx.console.print(results.render_text())

    return results.exit_code


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None, ctx: Optional[Context] = None) -> int:
    """
    Run the command line interface.

    Args:
        argv: Arguments (defaults to sys.argv[1:])
        ctx: Collaborators to use (defaults to real console, disk and network)

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if ctx is None:
        try:
            ctx = Context()
        except ValueError as e:
            Console(stderr=True).print(f"[red]Error:[/red] {escape(str(e))}")
            return 1

    configure_logging(args.log_level or ctx.settings.log_level)

    try:
        return args.handler(args, ctx)
    except DevkitError as e:
        logger.debug("Command failed", exc_info=True)
        ctx.console.print(f"[red]❌ Error:[/red] {escape(str(e))}")
        return 1
