"""Static analyzers run over checked programs."""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from . import ast
from .errors import Position
from .locations import Location
from .sema import ABSTRACT_NUMBER_TYPE_NAMES, Elaboration, OptionalType, PrimitiveType, ReferenceType, Type, is_known

REMOVAL_HINT = "removal-hint"
DEPRECATED = "deprecated"
UPDATE = "update"

DEPRECATION_MARKER = "Deprecated:"


@dataclass
class Diagnostic:
    location: Optional[Location]
    category: str
    message: str
    start_pos: Position
    end_pos: Position
    secondary_message: str = ""


@dataclass
class AnalysisProgram:
    program: ast.Program
    elaboration: Elaboration
    location: Optional[Location]
    code: bytes = b""


Report = Callable[[Diagnostic], None]


@dataclass
class Analyzer:
    name: str
    description: str
    run: Callable[[AnalysisProgram, Report], None]


def _diagnostic(program: AnalysisProgram, category: str, message: str, node, secondary: str = "") -> Diagnostic:
    return Diagnostic(
        location=program.location,
        category=category,
        message=message,
        start_pos=node.start_pos,
        end_pos=node.end_pos,
        secondary_message=secondary,
    )


def _nodes(program: AnalysisProgram, kind) -> Iterable:
    return (node for node in ast.walk(program.program) if isinstance(node, kind))


def _unnecessary_force(program: AnalysisProgram, report: Report) -> None:
    for node in _nodes(program, ast.ForceExpression):
        inner = program.elaboration.expression_type(node.expression)
        if is_known(inner) and not isinstance(inner, OptionalType):
            report(_diagnostic(program, REMOVAL_HINT, "unnecessary force operator", node))


LITERALS = (
    ast.IntegerExpression,
    ast.FixedPointExpression,
    ast.StringExpression,
    ast.StringTemplateExpression,
    ast.BoolExpression,
    ast.NilExpression,
    ast.ArrayExpression,
    ast.DictionaryExpression,
    ast.PathExpression,
    ast.ReferenceExpression,
)


def _takes_type_from_cast(expression: ast.Expression) -> bool:
    """True when the cast itself determines the type of the expression."""
    if isinstance(expression, LITERALS):
        return True
    if isinstance(expression, ast.ReferenceExpression):
        return True
    if isinstance(expression, ast.UnaryExpression):
        return _takes_type_from_cast(expression.expression)
    if isinstance(expression, ast.BinaryExpression):
        return _takes_type_from_cast(expression.left) or _takes_type_from_cast(expression.right)
    if isinstance(expression, ast.ConditionalExpression):
        return _takes_type_from_cast(expression.then) or _takes_type_from_cast(expression.otherwise)
    return False


def _redundant_cast(program: AnalysisProgram, report: Report) -> None:
    for node in _nodes(program, ast.CastingExpression):
        if node.operation != "as" or _takes_type_from_cast(node.expression):
            continue
        types = program.elaboration.casting_types.get(node)
        if types is None:
            continue
        inner, target = types
        if is_known(inner) and is_known(target) and inner == target:
            report(_diagnostic(program, REMOVAL_HINT, f"cast to `{target}` is redundant", node.type_annotation))


def _deprecated_member(program: AnalysisProgram, report: Report) -> None:
    for node in _nodes(program, ast.MemberExpression):
        member = program.elaboration.member_accesses.get(node)
        if member is None or not member.docstring or DEPRECATION_MARKER not in member.docstring:
            continue
        note = member.docstring.split(DEPRECATION_MARKER, 1)[1].strip()
        report(_diagnostic(program, DEPRECATED, f"`{member.name}` is deprecated", node.identifier, note))


NUMBER_SUPERTYPE_OPERATORS = ("+", "-", "*", "/", "%", "&", "|", "^", "<<", ">>", "<", "<=", ">", ">=")


def _number_supertype_binary_operations(program: AnalysisProgram, report: Report) -> None:
    for node in _nodes(program, ast.BinaryExpression):
        if node.operation not in NUMBER_SUPERTYPE_OPERATORS:
            continue
        for operand in (node.left, node.right):
            operand_type = program.elaboration.expression_type(operand)
            if isinstance(operand_type, PrimitiveType) and operand_type.type_name in ABSTRACT_NUMBER_TYPE_NAMES:
                report(
                    _diagnostic(
                        program,
                        UPDATE,
                        f"operator `{node.operation}` cannot be applied to number supertype `{operand_type}`",
                        node,
                        "convert the operands to a concrete number type",
                    )
                )
                break


def _is_reference_type(t: Type) -> bool:
    if isinstance(t, OptionalType):
        return _is_reference_type(t.type)
    return isinstance(t, ReferenceType)


def _reference_operator(program: AnalysisProgram, report: Report) -> None:
    for node in _nodes(program, ast.CastingExpression):
        if not isinstance(node.expression, ast.ReferenceExpression):
            continue
        types = program.elaboration.casting_types.get(node)
        if types is None or not is_known(types[1]) or _is_reference_type(types[1]):
            continue
        report(
            _diagnostic(
                program,
                UPDATE,
                "incorrect reference operator used",
                node.expression,
                f"a reference must be cast to a reference type, not `{types[1]}`",
            )
        )
    for node in _nodes(program, ast.VariableDeclaration):
        if node.type_annotation is None and isinstance(node.value, ast.ReferenceExpression):
            report(
                _diagnostic(
                    program,
                    UPDATE,
                    "incorrect reference operator used",
                    node.value,
                    "cast the reference to its type, e.g., `&x as &T`",
                )
            )


ANALYZERS: Dict[str, Analyzer] = {
    a.name: a
    for a in (
        Analyzer("unnecessary-force", "Detects force operators applied to non-optional values", _unnecessary_force),
        Analyzer("redundant-cast", "Detects static casts to the type the value already has", _redundant_cast),
        Analyzer("deprecated-member", "Detects uses of members documented as deprecated", _deprecated_member),
        Analyzer(
            "number-supertype-binary-operations",
            "Detects arithmetic, bitwise and ordering operations on number supertypes",
            _number_supertype_binary_operations,
        ),
        Analyzer("reference-operator", "Detects references not cast to a reference type", _reference_operator),
    )
}


def run_analyzers(program: AnalysisProgram, report: Report, analyzers: Optional[Iterable[Analyzer]] = None) -> None:
    for analyzer in analyzers if analyzers is not None else ANALYZERS.values():
        analyzer.run(program, report)
