"""Positioned errors produced by the Cadence lexer, parser and checker."""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Position:
    """A point in source code. Offsets are in bytes, lines 1-based, columns 0-based."""

    offset: int
    line: int
    column: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position  # inclusive


class CadenceError(Exception):
    """Base for every error that carries a source range."""

    def __init__(
        self,
        message: str,
        start_pos: Position,
        end_pos: Optional[Position] = None,
        secondary_message: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.start_pos = start_pos
        self.end_pos = end_pos or start_pos
        self.secondary_message = secondary_message


class InvalidSyntaxError(CadenceError):
    """Raised by the lexer and parser for malformed source."""


class SyntaxErrorWithSuggestedReplacement(InvalidSyntaxError):
    """A recoverable syntax error that comes with a replacement text."""

    def __init__(self, message: str, start_pos: Position, end_pos: Position, replacement: str):
        super().__init__(message, start_pos, end_pos, secondary_message=f"replace with `{replacement}`")
        self.replacement = replacement


class ParserError(Exception):
    """Parent error holding every syntax error found in one program."""

    def __init__(self, errors: List[InvalidSyntaxError]):
        super().__init__("; ".join(e.message for e in errors))
        self.errors = errors


class SemanticError(CadenceError):
    """Base for errors reported by the checker."""


class NotDeclaredError(SemanticError):
    def __init__(self, kind: str, name: str, start_pos: Position, end_pos: Position):
        super().__init__(
            f"cannot find {kind} in this scope: `{name}`",
            start_pos,
            end_pos,
            secondary_message="not found in this scope",
        )
        self.kind = kind
        self.name = name


class RedeclarationError(SemanticError):
    def __init__(self, kind: str, name: str, start_pos: Position, end_pos: Position):
        super().__init__(f"cannot redeclare {kind}: `{name}`", start_pos, end_pos)
        self.name = name


class AssignmentToConstantError(SemanticError):
    def __init__(self, name: str, start_pos: Position, end_pos: Position):
        super().__init__(f"cannot assign to constant: `{name}`", start_pos, end_pos)
        self.name = name


class NotDeclaredMemberError(SemanticError):
    def __init__(self, type_name: str, name: str, start_pos: Position, end_pos: Position):
        super().__init__(
            f"value of type `{type_name}` has no member `{name}`",
            start_pos,
            end_pos,
            secondary_message="unknown member",
        )
        self.name = name


class InvalidAccessError(SemanticError):
    def __init__(self, name: str, kind: str, access: str, start_pos: Position, end_pos: Position):
        super().__init__(
            f"access denied: cannot access `{name}`: {kind} requires `{access}` authorization",
            start_pos,
            end_pos,
        )
        self.name = name
        self.access = access


class ArgumentCountError(SemanticError):
    def __init__(self, expected: int, actual: int, start_pos: Position, end_pos: Position):
        super().__init__(
            f"incorrect number of arguments: expected {expected}, got {actual}",
            start_pos,
            end_pos,
        )


class TypeMismatchError(SemanticError):
    def __init__(self, expected: str, actual: str, start_pos: Position, end_pos: Position):
        super().__init__(
            "mismatched types",
            start_pos,
            end_pos,
            secondary_message=f"expected `{expected}`, got `{actual}`",
        )
        self.expected = expected
        self.actual = actual


class MissingArgumentLabelError(SemanticError):
    def __init__(self, label: str, start_pos: Position, end_pos: Position):
        super().__init__(f"missing argument label: `{label}`", start_pos, end_pos)
        self.label = label


class IncorrectArgumentLabelError(SemanticError):
    def __init__(self, expected: Optional[str], actual: str, start_pos: Position, end_pos: Position):
        secondary = f"expected `{expected}`, got `{actual}`" if expected else "expected no label"
        super().__init__("incorrect argument label", start_pos, end_pos, secondary_message=secondary)
        self.expected = expected
        self.actual = actual


class MissingReturnStatementError(SemanticError):
    def __init__(self, start_pos: Position, end_pos: Position):
        super().__init__("missing return statement", start_pos, end_pos)


class ResourceLossError(SemanticError):
    def __init__(self, name: str, start_pos: Position, end_pos: Position):
        super().__init__(
            "loss of resource",
            start_pos,
            end_pos,
            secondary_message=f"`{name}` is never moved or destroyed",
        )
        self.name = name


class NotExportedError(SemanticError):
    def __init__(self, name: str, location: str, available: List[str], start_pos: Position, end_pos: Position):
        secondary = ""
        if available:
            secondary = "available exported declarations are: " + ", ".join(f"`{a}`" for a in available)
        super().__init__(
            f"cannot find declaration `{name}` in `{location}`",
            start_pos,
            end_pos,
            secondary_message=secondary,
        )


class ImportedProgramError(SemanticError):
    def __init__(self, location: str, start_pos: Position, end_pos: Position):
        super().__init__(f"checking of imported program `{location}` failed", start_pos, end_pos)


class CyclicImportsError(SemanticError):
    def __init__(self, location: str, start_pos: Position, end_pos: Position):
        super().__init__(f"cyclic import of `{location}`", start_pos, end_pos)


class CheckerError(Exception):
    """Parent error holding every error reported while checking one program."""

    def __init__(self, errors: List[CadenceError]):
        super().__init__("; ".join(e.message for e in errors))
        self.errors = errors


class ImportResolutionError(Exception):
    """Raised by an import handler that cannot provide the imported program."""


class UnresolvedImportError(CadenceError):
    """Import handler failure, reported at the import declaration."""

    def __init__(self, location: str, reason: str, start_pos: Position, end_pos: Position):
        super().__init__(f"cannot import `{location}`: {reason}", start_pos, end_pos)
