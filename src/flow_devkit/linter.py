"""Cadence linter: parse, check and analyze files, collecting diagnostics."""

import logging
import os
from typing import Dict, Iterable, List, Optional

from .cadence import ast
from .cadence.analyzers import ANALYZERS, AnalysisProgram, Analyzer, Diagnostic, run_analyzers
from .cadence.checker import Checker, CheckerConfig
from .cadence.errors import CheckerError, Range
from .cadence.locations import AddressLocation, Location, StringLocation
from .cadence.parser import parse_program
from .cadence.sema import Elaboration
from .cadence.stdlib import BUILTIN_ELABORATIONS, StandardLibrary, script_standard_library, standard_library
from .diagnostics import FileResult, LintResults, from_error, internal_error, sort_diagnostics
from .exceptions import DevkitError, ImportResolutionError
from .filesystem import FileSystem
from .manifest import Manifest
from .resolver import SourceResolver
from .types import Contract

logger = logging.getLogger(__name__)


def _path_key(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


class Linter:
    """
    Lints Cadence files against the semantic checker and the analyzers.

    Imports resolve by contract name through the manifest, or by path relative
    to the importing file. Imported programs are parsed and checked once per
    linter instance.
    """

    def __init__(
        self,
        fs: FileSystem,
        manifest: Optional[Manifest] = None,
        analyzers: Optional[Iterable[Analyzer]] = None,
    ):
        self.fs = fs
        self.resolver = SourceResolver(fs, manifest)
        self.analyzers = list(analyzers) if analyzers is not None else list(ANALYZERS.values())

        # Scripts have a different standard library than contracts and transactions
        self.standard_config = self._new_checker_config(standard_library())
        self.script_config = self._new_checker_config(script_standard_library())

        # resolved file path -> elaboration, including programs still being checked
        self.elaborations: Dict[str, Elaboration] = {}
        # location -> file path it was read from
        self.location_paths: Dict[Location, str] = {}
        self.location_elaborations: Dict[Location, Elaboration] = {}
        # resolved file path -> error of a program that failed to check
        self.failures: Dict[str, CheckerError] = {}

    def _new_checker_config(self, library: StandardLibrary) -> CheckerConfig:
        return CheckerConfig(
            standard_library=library,
            import_handler=self._handle_import,
            location_handler=self._handle_location,
            account_access_handler=self._handle_account_access,
        )

    def _config_for(self, program: ast.Program) -> CheckerConfig:
        if program.sole_transaction_declaration() is not None or program.sole_contract_declaration() is not None:
            return self.standard_config
        return self.script_config

    # Linting

    def lint_file(self, path: str) -> List[Diagnostic]:
        """
        Parse, check and analyze one file.

        Args:
            path: Path of the Cadence file

        Returns:
            Sorted diagnostics of the file

        Raises:
            FileSystemError: If the file cannot be read
        """
        location = StringLocation(path)
        code = self.fs.read_file(path)
        diagnostics: List[Diagnostic] = []

        # Parse program & convert any parsing errors to diagnostics
        program, parser_error = parse_program(code)
        if parser_error is not None:
            diagnostics.extend(from_error(e, location) for e in parser_error.errors)

        # Nothing can be checked & analyzed without a program
        if program is None:
            return sort_diagnostics(diagnostics)

        checker = Checker(program, location, self._config_for(program))
        self._register(location, path, checker.elaboration)
        try:
            self._check(checker, path)
        except CheckerError as e:
            diagnostics.extend(from_error(err, location) for err in e.errors)

        analysis_program = AnalysisProgram(program=program, elaboration=checker.elaboration, location=location, code=code)
        run_analyzers(analysis_program, diagnostics.append, self.analyzers)

        return sort_diagnostics(diagnostics)

    def lint_files(self, paths: List[str]) -> LintResults:
        """
        Lint several files; a failure on one file does not stop the others.

        Args:
            paths: File paths, reported as given

        Returns:
            LintResults with one entry per file, in the given order
        """
        results = LintResults()
        for path in paths:
            try:
                diagnostics = self.lint_file(path)
            except (DevkitError, RecursionError) as e:
                logger.debug(f"Failed to lint {path}: {e}")
                results.had_internal_failure = True
                diagnostics = [internal_error(StringLocation(path), str(e))]
            results.results.append(FileResult(file_path=path, diagnostics=diagnostics))
        return results

    def _register(self, location: Location, path: str, elaboration: Elaboration) -> None:
        self.elaborations[_path_key(path)] = elaboration
        self.location_paths.setdefault(location, path)
        self.location_elaborations.setdefault(location, elaboration)

    def _check(self, checker: Checker, path: str) -> None:
        # Every importer of a broken program must see the failure, not only the first
        key = _path_key(path)
        try:
            checker.check()
        except CheckerError as e:
            self.failures[key] = e
            raise
        self.failures.pop(key, None)

    # Checker hooks

    def _handle_location(self, identifiers: List[str], location: Location) -> Location:
        # Linting never resolves against the chain
        if isinstance(location, AddressLocation):
            raise ImportResolutionError(
                f"address imports are not supported when linting, import {location.name or 'the contract'} by name"
            )
        return location

    def _handle_import(self, checker: Checker, location: Location, import_range: Range) -> Elaboration:
        if location in BUILTIN_ELABORATIONS:
            return BUILTIN_ELABORATIONS[location]()

        if not isinstance(location, StringLocation):
            raise ImportResolutionError(f"unsupported location: {location}")

        if location.is_path():
            parent = self.location_paths.get(checker.location)
            path = self.resolver.resolve_path(location.value, parent)
            imported_location: Location = StringLocation(path)
        else:
            path = self.resolver.resolve_name(location.value)
            imported_location = location

        key = _path_key(path)
        if key in self.failures:
            raise self.failures[key]
        elaboration = self.elaborations.get(key)
        if elaboration is not None:
            # A program still being checked makes the checker report the cycle
            return elaboration

        logger.debug(f"Checking import {location} from {path}")
        code = self.resolver.read(path)
        program, parser_error = parse_program(code)
        if program is None or parser_error is not None:
            raise CheckerError(parser_error.errors if parser_error is not None else [])

        sub_checker = checker.sub_checker(program, imported_location)
        self._register(imported_location, path, sub_checker.elaboration)
        self._check(sub_checker, path)
        return sub_checker.elaboration

    def _contract_for_location(self, location: Optional[Location]) -> Optional[Contract]:
        if isinstance(location, StringLocation) and not location.is_path():
            contract = self.resolver.contract_by_name(location.value)
            if contract is not None:
                return contract

        path = self.location_paths.get(location)
        if path is not None:
            contract = self.resolver.contract_for_path(path)
            if contract is not None:
                return contract

        # Fall back to the name of the contract declared in the program
        elaboration = self.location_elaborations.get(location)
        if elaboration is not None and elaboration.program is not None:
            declaration = elaboration.program.sole_contract_declaration()
            if declaration is not None:
                return self.resolver.contract_by_name(declaration.identifier.name)
        return None

    def _handle_account_access(self, checker: Checker, member_location: Optional[Location]) -> bool:
        first = self._contract_for_location(checker.location)
        second = self._contract_for_location(member_location)
        if first is None or second is None:
            return False
        return self.resolver.same_account(first, second)
