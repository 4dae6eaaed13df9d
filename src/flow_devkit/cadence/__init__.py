"""Cadence language toolkit: parser, import analysis, checker and analyzers."""

from .analyzers import ANALYZERS, AnalysisProgram, Analyzer, Diagnostic, run_analyzers
from .checker import Checker, CheckerConfig
from .errors import (
    CadenceError,
    CheckerError,
    ImportResolutionError,
    InvalidSyntaxError,
    ParserError,
    Position,
    Range,
    SemanticError,
    SyntaxErrorWithSuggestedReplacement,
)
from .imports import AddressImport, ImportAnalysis, StringImport, analyze_imports, rewrite_address_imports
from .locations import (
    BLOCKCHAIN_HELPERS_LOCATION,
    CRYPTO_LOCATION,
    TEST_LOCATION,
    AddressLocation,
    IdentifierLocation,
    Location,
    StringLocation,
)
from .parser import parse_program
from .sema import Elaboration
from .stdlib import BUILTIN_ELABORATIONS, script_standard_library, standard_library

__all__ = [
    "ANALYZERS",
    "AnalysisProgram",
    "Analyzer",
    "Diagnostic",
    "run_analyzers",
    "Checker",
    "CheckerConfig",
    "CadenceError",
    "CheckerError",
    "ImportResolutionError",
    "InvalidSyntaxError",
    "ParserError",
    "Position",
    "Range",
    "SemanticError",
    "SyntaxErrorWithSuggestedReplacement",
    "AddressImport",
    "ImportAnalysis",
    "StringImport",
    "analyze_imports",
    "rewrite_address_imports",
    "BLOCKCHAIN_HELPERS_LOCATION",
    "CRYPTO_LOCATION",
    "TEST_LOCATION",
    "AddressLocation",
    "IdentifierLocation",
    "Location",
    "StringLocation",
    "parse_program",
    "Elaboration",
    "BUILTIN_ELABORATIONS",
    "script_standard_library",
    "standard_library",
]
