"""Import analysis for Cadence source.

Only the leading pragma/import section of a program is parsed, so contracts
that use syntax this parser does not understand further down can still be
installed as dependencies.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Union

from . import ast
from .errors import InvalidSyntaxError, ParserError
from .lexer import decode_source
from .locations import AddressLocation, IdentifierLocation, StringLocation
from .parser import Parser

logger = logging.getLogger(__name__)


@dataclass
class AddressImport:
    """`import A, B from 0x01`"""

    address: str
    identifiers: List[str]
    declaration: ast.ImportDeclaration

    def locations(self) -> List[AddressLocation]:
        return [AddressLocation(self.address, name) for name in self.identifiers]


@dataclass
class StringImport:
    """`import "A"` (by name) or `import A from "./A.cdc"` (by path)."""

    value: str
    identifiers: List[str]
    declaration: ast.ImportDeclaration

    @property
    def is_path(self) -> bool:
        return StringLocation(self.value).is_path()


@dataclass
class ImportAnalysis:
    declarations: List[Union[ast.ImportDeclaration, ast.PragmaDeclaration]] = field(default_factory=list)
    address_imports: List[AddressImport] = field(default_factory=list)
    string_imports: List[StringImport] = field(default_factory=list)
    identifier_imports: List[str] = field(default_factory=list)

    @property
    def name_imports(self) -> List[StringImport]:
        return [i for i in self.string_imports if not i.is_path]

    @property
    def path_imports(self) -> List[StringImport]:
        return [i for i in self.string_imports if i.is_path]


def analyze_imports(code: Union[bytes, str]) -> ImportAnalysis:
    """Classify the imports of a program.

    Args:
        code: Raw source bytes (or text).

    Returns:
        ImportAnalysis with address, string and identifier imports in source order.

    Raises:
        ParserError: If the import section is malformed.
    """
    parser = Parser(decode_source(code))
    try:
        declarations = parser.parse_import_section()
    except InvalidSyntaxError as e:
        raise ParserError(parser.soft_errors + [e]) from e

    analysis = ImportAnalysis(declarations=declarations)
    for declaration in declarations:
        if not isinstance(declaration, ast.ImportDeclaration):
            continue
        names = [i.name for i in declaration.identifiers]
        location = declaration.location
        if isinstance(location, AddressLocation):
            analysis.address_imports.append(AddressImport(location.address, names, declaration))
        elif isinstance(location, StringLocation):
            analysis.string_imports.append(StringImport(location.value, names or [location.value], declaration))
        elif isinstance(location, IdentifierLocation):
            analysis.identifier_imports.append(location.value)

    logger.debug(
        "Found %d address imports and %d string imports",
        len(analysis.address_imports),
        len(analysis.string_imports),
    )
    return analysis


def rewrite_address_imports(code: bytes) -> bytes:
    """Rewrite `import A, B from 0x01` into one `import "A"` line per identifier.

    Replacement happens on byte ranges, last declaration first, so the offsets
    of earlier declarations stay valid. Everything outside the rewritten
    declarations is preserved byte for byte.
    """
    if isinstance(code, str):
        code = code.encode("utf-8")
    analysis = analyze_imports(code)

    result = bytearray(code)
    for address_import in reversed(analysis.address_imports):
        if not address_import.identifiers:
            continue
        declaration = address_import.declaration
        start = declaration.start_pos.offset
        end = declaration.end_pos.offset + 1

        line_start = result.rfind(b"\n", 0, start) + 1
        indent = bytes(result[line_start:start])
        if indent.strip():
            indent = b""

        lines = [f'import "{name}"'.encode("utf-8") for name in address_import.identifiers]
        result[start:end] = (b"\n" + indent).join(lines)

    return bytes(result)
