"""Integration tests for the Cadence linter."""

import pytest

from flow_devkit.cadence.errors import Position
from flow_devkit.cadence.locations import StringLocation
from flow_devkit.filesystem import MemoryFileSystem
from flow_devkit.linter import Linter
from flow_devkit.manifest import Manifest
from flow_devkit.types import Contract, Dependency, Source

NO_ERROR = """
	access(all) contract NoError {
		access(all) fun test() {}
		init() {}
	}
	"""

WITH_IMPORTS = """
	import "../NoError.cdc"
	access(all) contract WithImports {
		init() {}
	}
	"""

WITH_MANIFEST_IMPORT = """
	import "NoError"
	access(all) contract WithFlowkitImport {
		init() {
			log(NoError.getType())
		}
	}
	"""

LINT_WARNING = """
	access(all) contract LintWarning {
		init() {
			let x = 1!
		}
	}"""

LINT_ERROR = """
	access(all) contract LintError {
		init() {
			let x = 1!
			qqq
		}
	}"""

CONTRACT_A = """import "ContractB"

access(all) contract ContractA {
    access(all) fun g() {
        ContractB.f()
    }
}
"""

CONTRACT_B = """access(all) contract ContractB {
    access(account) fun f() {}
}
"""


@pytest.fixture
def project() -> MemoryFileSystem:
    """File system holding the sample contracts."""
    return MemoryFileSystem(
        {
            "NoError.cdc": NO_ERROR,
            "foo/WithImports.cdc": WITH_IMPORTS,
            "WithFlowkitImport.cdc": WITH_MANIFEST_IMPORT,
            "LintWarning.cdc": LINT_WARNING,
            "LintError.cdc": LINT_ERROR,
        }
    )


@pytest.fixture
def project_manifest(project) -> Manifest:
    """Manifest declaring NoError."""
    manifest = Manifest.default("flow.json", project)
    manifest.add_or_update_contract(Contract(name="NoError", location="NoError.cdc"))
    return manifest


def _access_project(address_a: str, address_b: str) -> Linter:
    fs = MemoryFileSystem({"ContractA.cdc": CONTRACT_A, "ContractB.cdc": CONTRACT_B})
    manifest = Manifest.default("flow.json", fs)
    manifest.add_or_update_contract(
        Contract(name="ContractA", location="ContractA.cdc", aliases={"testnet": address_a})
    )
    manifest.add_or_update_contract(
        Contract(name="ContractB", location="ContractB.cdc", aliases={"testnet": address_b})
    )
    return Linter(fs, manifest)


class TestLintFiles:
    """Test linting the sample contracts."""

    def test_clean_contract(self, project, project_manifest):
        """Test that a clean contract has no diagnostics."""
        results = Linter(project, project_manifest).lint_files(["NoError.cdc"])

        assert len(results.results) == 1
        assert results.results[0].file_path == "NoError.cdc"
        assert results.results[0].diagnostics == []
        assert results.exit_code == 0

    def test_relative_path_import(self, project, project_manifest):
        """Test that path imports resolve against the importing file."""
        results = Linter(project, project_manifest).lint_files(["foo/WithImports.cdc"])

        # Only the linted file is reported, not the imported one
        assert [r.file_path for r in results.results] == ["foo/WithImports.cdc"]
        assert results.results[0].diagnostics == []
        assert results.exit_code == 0

    def test_multiple_files(self, project, project_manifest):
        """Test that results keep the order of the given files."""
        results = Linter(project, project_manifest).lint_files(["NoError.cdc", "foo/WithImports.cdc"])

        assert [r.file_path for r in results.results] == ["NoError.cdc", "foo/WithImports.cdc"]
        assert all(r.diagnostics == [] for r in results.results)
        assert results.exit_code == 0

    def test_name_import_through_manifest(self, project, project_manifest):
        """Test that name imports resolve through flow.json."""
        results = Linter(project, project_manifest).lint_files(["WithFlowkitImport.cdc"])

        assert results.results[0].diagnostics == []
        assert results.exit_code == 0

    def test_warning(self, project, project_manifest):
        """Test that a lint warning does not fail the run."""
        results = Linter(project, project_manifest).lint_files(["LintWarning.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "removal-hint"
        assert diagnostics[0].message == "unnecessary force operator"
        assert diagnostics[0].location == StringLocation("LintWarning.cdc")
        assert diagnostics[0].start_pos == Position(offset=59, line=4, column=11)
        assert diagnostics[0].end_pos == Position(offset=60, line=4, column=12)
        assert results.exit_code == 0

    def test_error(self, project, project_manifest):
        """Test that a semantic error fails the run, sorted after the earlier warning."""
        results = Linter(project, project_manifest).lint_files(["LintError.cdc"])

        diagnostics = results.results[0].diagnostics
        assert [d.category for d in diagnostics] == ["removal-hint", "semantic-error"]
        assert diagnostics[0].start_pos == Position(offset=57, line=4, column=11)
        assert diagnostics[1].message == "cannot find variable in this scope: `qqq`"
        assert diagnostics[1].secondary_message == "not found in this scope"
        assert diagnostics[1].start_pos == Position(offset=63, line=5, column=3)
        assert diagnostics[1].end_pos == Position(offset=65, line=5, column=5)
        assert results.exit_code == 1

    def test_missing_file(self, project, project_manifest):
        """Test that an unreadable file is an internal failure, not a crash."""
        results = Linter(project, project_manifest).lint_files(["Missing.cdc", "NoError.cdc"])

        assert results.had_internal_failure
        assert results.results[0].diagnostics[0].category == "error"
        assert results.results[1].diagnostics == []
        assert results.exit_code == 1

    def test_syntax_error(self):
        """Test that a syntax error is reported as a diagnostic."""
        fs = MemoryFileSystem({"Broken.cdc": "access(all) contract {\n"})

        results = Linter(fs).lint_files(["Broken.cdc"])

        assert results.results[0].diagnostics[0].category == "syntax-error"
        assert results.exit_code == 1

    def test_script(self):
        """Test that a script is checked with the script standard library."""
        fs = MemoryFileSystem({"script.cdc": "access(all) fun main() {}\n"})

        results = Linter(fs).lint_files(["script.cdc"])

        assert results.results[0].diagnostics == []

    def test_byte_order_mark_and_crlf_positions(self):
        """Test positions in a file with a byte order mark, CRLF line endings and trailing whitespace."""
        code = "\ufeffaccess(all) contract Crlf {\r\n    init() {\r\n        let x = 1!   \r\n    }\r\n}\r\n"
        fs = MemoryFileSystem({"Crlf.cdc": code})

        results = Linter(fs).lint_files(["Crlf.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "removal-hint"
        # The byte order mark takes three bytes, each CR one column
        assert diagnostics[0].start_pos == Position(offset=62, line=3, column=16)
        assert diagnostics[0].end_pos == Position(offset=63, line=3, column=17)


class TestImportResolution:
    """Test import failures."""

    def test_name_import_without_manifest(self):
        """Test that a name import cannot resolve without flow.json."""
        fs = MemoryFileSystem({"A.cdc": 'import "Missing"\naccess(all) contract A {}\n'})

        results = Linter(fs).lint_files(["A.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "error"
        assert diagnostics[0].message.startswith("cannot import `Missing`")
        assert results.exit_code == 1

    def test_address_import_is_rejected(self):
        """Test that address imports are not resolved against the chain."""
        fs = MemoryFileSystem({"A.cdc": "import Foo from 0x01\naccess(all) contract A {}\n"})

        results = Linter(fs).lint_files(["A.cdc"])

        assert [d.category for d in results.results[0].diagnostics] == ["error"]

    def test_cyclic_imports(self):
        """Test that an import cycle is reported instead of recursing forever."""
        fs = MemoryFileSystem(
            {
                "A.cdc": 'import "./B.cdc"\naccess(all) contract A {}\n',
                "B.cdc": 'import "./A.cdc"\naccess(all) contract B {}\n',
            }
        )

        results = Linter(fs).lint_files(["A.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "semantic-error"
        assert diagnostics[0].message.startswith("checking of imported program")
        assert not results.had_internal_failure

    @pytest.mark.parametrize("order", [["A.cdc", "C.cdc", "B.cdc"], ["B.cdc", "A.cdc", "C.cdc"]])
    def test_every_importer_sees_broken_import(self, order):
        """Test that each importer of a program that fails to check reports it, whatever the order."""
        fs = MemoryFileSystem(
            {
                "A.cdc": 'import "./B.cdc"\naccess(all) contract A {}\n',
                "B.cdc": "access(all) contract B {\n    init() { qqq }\n}\n",
                "C.cdc": 'import "./B.cdc"\naccess(all) contract C {}\n',
            }
        )

        results = Linter(fs).lint_files(order)

        by_file = {r.file_path: r.diagnostics for r in results.results}
        for importer in ("A.cdc", "C.cdc"):
            assert len(by_file[importer]) == 1
            assert by_file[importer][0].category == "semantic-error"
            assert by_file[importer][0].message == "checking of imported program `./B.cdc` failed"
        assert [d.message for d in by_file["B.cdc"]] == ["cannot find variable in this scope: `qqq`"]
        assert results.exit_code == 1

    def test_dependency_import(self):
        """Test that a dependency resolves to its file under imports/."""
        fs = MemoryFileSystem(
            {
                "imports/8efde57e98c557fa/Hello.cdc": "access(all) contract Hello {}\n",
                "A.cdc": 'import "Hello"\naccess(all) contract A {}\n',
            }
        )
        manifest = Manifest.default("flow.json", fs)
        manifest.add_or_update_dependency(
            Dependency(name="Hello", source=Source("testnet", "8efde57e98c557fa", "Hello"))
        )

        results = Linter(fs, manifest).lint_files(["A.cdc"])

        assert results.results[0].diagnostics == []


class TestAccountAccess:
    """Test access(account) across contracts of the project."""

    def test_same_account_allowed(self):
        """Test that contracts aliased to the same address share account access."""
        results = _access_project("0000000000000001", "0x1").lint_files(["ContractA.cdc"])

        assert results.results[0].diagnostics == []
        assert results.exit_code == 0

    def test_different_account_denied(self):
        """Test that contracts on different accounts are denied."""
        results = _access_project("0000000000000001", "0000000000000002").lint_files(["ContractA.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "semantic-error"
        assert "access denied" in diagnostics[0].message
        assert results.exit_code == 1


class TestAnalyzers:
    """Test the analyzers beyond unnecessary-force."""

    def test_redundant_cast(self):
        """Test that casting a value to its own type is flagged."""
        code = (
            "access(all) contract Casts {\n"
            "    access(all) fun f() {\n"
            "        let x: Int = 1\n"
            "        let y = x as Int\n"
            "        let z = 2 as UInt8\n"
            "    }\n"
            "}\n"
        )
        fs = MemoryFileSystem({"Casts.cdc": code})

        results = Linter(fs).lint_files(["Casts.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "removal-hint"
        assert diagnostics[0].message == "cast to `Int` is redundant"
        assert diagnostics[0].start_pos.line == 4
        assert results.exit_code == 0

    def test_deprecated_member(self):
        """Test that using a member documented as deprecated is flagged."""
        code = (
            "access(all) contract Old {\n"
            "    /// Deprecated: use g instead\n"
            "    access(all) fun f() {}\n"
            "    access(all) fun g() {\n"
            "        self.f()\n"
            "    }\n"
            "}\n"
        )
        fs = MemoryFileSystem({"Old.cdc": code})

        results = Linter(fs).lint_files(["Old.cdc"])

        diagnostics = results.results[0].diagnostics
        assert len(diagnostics) == 1
        assert diagnostics[0].category == "deprecated"
        assert diagnostics[0].message == "`f` is deprecated"
        assert diagnostics[0].secondary_message == "use g instead"
        assert results.exit_code == 0

    def test_number_supertype_binary_operations(self):
        """Test that arithmetic and ordering on number supertypes are flagged."""
        code = (
            "access(all) contract Numbers {\n"
            "    access(all) fun f(a: Integer, b: Integer, c: Int): Bool {\n"
            "        let sum = a + b\n"
            "        let d = c + 1\n"
            "        return a < b\n"
            "    }\n"
            "}\n"
        )
        fs = MemoryFileSystem({"Numbers.cdc": code})

        results = Linter(fs).lint_files(["Numbers.cdc"])

        diagnostics = results.results[0].diagnostics
        assert [d.category for d in diagnostics] == ["update", "update"]
        assert diagnostics[0].message == "operator `+` cannot be applied to number supertype `Integer`"
        assert diagnostics[0].start_pos.line == 3
        assert diagnostics[1].message == "operator `<` cannot be applied to number supertype `Integer`"
        assert results.exit_code == 0

    def test_reference_operator(self):
        """Test that references without a reference type cast are flagged."""
        code = (
            "access(all) contract Refs {\n"
            "    access(all) let n: Int\n"
            "    access(all) fun f() {\n"
            "        let a = &self.n as &Int\n"
            "        let b = &self.n\n"
            "        let c = &self.n as Int\n"
            "    }\n"
            "    init() {\n"
            "        self.n = 1\n"
            "    }\n"
            "}\n"
        )
        fs = MemoryFileSystem({"Refs.cdc": code})

        results = Linter(fs).lint_files(["Refs.cdc"])

        diagnostics = results.results[0].diagnostics
        assert [d.category for d in diagnostics] == ["update", "update"]
        assert {d.message for d in diagnostics} == {"incorrect reference operator used"}
        assert sorted(d.start_pos.line for d in diagnostics) == [5, 6]
        assert results.exit_code == 0
