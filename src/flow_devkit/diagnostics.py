"""Lint diagnostics: conversion, severity, ordering and rendering."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.markup import escape

from .cadence.analyzers import Diagnostic
from .cadence.errors import CadenceError, InvalidSyntaxError, Position, SemanticError
from .cadence.locations import Location, StringLocation
from .constants import ERROR_CATEGORIES, ERROR_CATEGORY, SEMANTIC_ERROR_CATEGORY, SYNTAX_ERROR_CATEGORY

ERROR = "error"
WARNING = "warning"


def error_category(error: CadenceError) -> str:
    """Map a parser or checker error to its diagnostic category."""
    if isinstance(error, InvalidSyntaxError):
        return SYNTAX_ERROR_CATEGORY
    if isinstance(error, SemanticError):
        return SEMANTIC_ERROR_CATEGORY
    return ERROR_CATEGORY


def from_error(error: CadenceError, location: Optional[Location]) -> Diagnostic:
    """Convert a positioned error to a diagnostic."""
    return Diagnostic(
        location=location,
        category=error_category(error),
        message=error.message,
        start_pos=error.start_pos,
        end_pos=error.end_pos,
        secondary_message=error.secondary_message,
    )


def internal_error(location: Optional[Location], message: str) -> Diagnostic:
    """Diagnostic standing in for a failure that carries no source position."""
    start = Position(0, 1, 0)
    return Diagnostic(location=location, category=ERROR_CATEGORY, message=message, start_pos=start, end_pos=start)


def severity(category: str) -> str:
    """Error for the error categories; every other category is a warning."""
    return ERROR if category in ERROR_CATEGORIES else WARNING


def is_error(diagnostic: Diagnostic) -> bool:
    return severity(diagnostic.category) == ERROR


def sort_diagnostics(diagnostics: List[Diagnostic]) -> List[Diagnostic]:
    """Order by start offset, then category, then message."""
    return sorted(diagnostics, key=lambda d: (d.start_pos.offset, d.category, d.message))


def _position_dict(position: Position) -> Dict[str, int]:
    return {"line": position.line, "column": position.column, "offset": position.offset}


def diagnostic_to_dict(diagnostic: Diagnostic) -> Dict[str, Any]:
    """Canonical JSON form of a diagnostic."""
    location = diagnostic.location
    return {
        "location": location.value if isinstance(location, StringLocation) else str(location or ""),
        "category": diagnostic.category,
        "message": diagnostic.message,
        "secondaryMessage": diagnostic.secondary_message,
        "range": {"start": _position_dict(diagnostic.start_pos), "end": _position_dict(diagnostic.end_pos)},
    }


@dataclass
class FileResult:
    """Diagnostics of one linted file."""

    file_path: str
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class LintResults:
    """Results of one lint run."""

    results: List[FileResult] = field(default_factory=list)
    had_internal_failure: bool = False

    def all_diagnostics(self) -> List[Diagnostic]:
        return [d for result in self.results for d in result.diagnostics]

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.all_diagnostics() if is_error(d))

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.all_diagnostics() if not is_error(d))

    @property
    def exit_code(self) -> int:
        """1 if any diagnostic is an error or a file failed to process, else 0."""
        if self.had_internal_failure or self.error_count:
            return 1
        return 0

    def summary(self) -> str:
        errors = self.error_count
        warnings = self.warning_count
        return f"{errors + warnings} problems ({errors} errors, {warnings} warnings)"

    def render_text(self) -> str:
        """
        Render every diagnostic on its own line followed by the summary.

        Returns:
            Text with rich console markup
        """
        lines = []
        for result in self.results:
            for d in result.diagnostics:
                color = "red" if is_error(d) else "yellow"
                lines.append(
                    f"{escape(result.file_path)}:{d.start_pos.line}:{d.start_pos.column}: "
                    f"[{color}]{escape(d.category)}[/{color}]: {escape(d.message)}"
                )
        lines.append(self.render_inline())
        return "\n".join(lines)

    def render_inline(self) -> str:
        """Render the summary alone, colored by the worst severity found."""
        if self.error_count:
            color = "red"
        elif self.warning_count:
            color = "yellow"
        else:
            color = "green"
        return f"[bold {color}]{escape(self.summary())}[/bold {color}]"

    def to_json(self) -> List[Dict[str, Any]]:
        return [
            {"FilePath": result.file_path, "Diagnostics": [diagnostic_to_dict(d) for d in result.diagnostics]}
            for result in self.results
        ]
