"""Abstract syntax tree for Cadence programs.

Nodes compare by identity so they can key elaboration maps.
"""

from dataclasses import dataclass, field, fields
from typing import Iterator, List, Optional, Union

from .errors import Position
from .locations import Location

ACCESS_NOT_SPECIFIED = "not-specified"
ACCESS_ALL = "all"
ACCESS_SELF = "self"
ACCESS_CONTRACT = "contract"
ACCESS_ACCOUNT = "account"
ACCESS_ENTITLEMENTS = "entitlements"
ACCESS_MAPPING = "mapping"


@dataclass(frozen=True)
class Access:
    kind: str = ACCESS_NOT_SPECIFIED
    entitlements: tuple = ()

    def keyword(self) -> str:
        if self.kind in (ACCESS_ENTITLEMENTS, ACCESS_MAPPING):
            return ", ".join(self.entitlements)
        return self.kind


@dataclass(eq=False, kw_only=True)
class Node:
    start_pos: Position
    end_pos: Position


@dataclass(eq=False, kw_only=True)
class Identifier(Node):
    name: str


# Types


@dataclass(eq=False, kw_only=True)
class TypeNode(Node):
    pass


@dataclass(eq=False, kw_only=True)
class NominalType(TypeNode):
    identifier: Identifier
    nested: List[Identifier] = field(default_factory=list)

    def qualified_name(self) -> str:
        return ".".join([self.identifier.name] + [n.name for n in self.nested])


@dataclass(eq=False, kw_only=True)
class OptionalType(TypeNode):
    type: TypeNode


@dataclass(eq=False, kw_only=True)
class VariableSizedType(TypeNode):
    type: TypeNode


@dataclass(eq=False, kw_only=True)
class ConstantSizedType(TypeNode):
    type: TypeNode
    size: int


@dataclass(eq=False, kw_only=True)
class DictionaryType(TypeNode):
    key_type: TypeNode
    value_type: TypeNode


@dataclass(eq=False, kw_only=True)
class TypeAnnotation(Node):
    is_resource: bool
    type: TypeNode


@dataclass(eq=False, kw_only=True)
class FunctionType(TypeNode):
    parameter_types: List[TypeAnnotation]
    return_type: Optional[TypeAnnotation]
    is_view: bool = False


@dataclass(eq=False, kw_only=True)
class Authorization(Node):
    entitlements: List[NominalType]
    is_mapping: bool = False
    is_disjoint: bool = False


@dataclass(eq=False, kw_only=True)
class ReferenceType(TypeNode):
    type: TypeNode
    authorization: Optional[Authorization] = None


@dataclass(eq=False, kw_only=True)
class IntersectionType(TypeNode):
    types: List[NominalType]
    legacy_type: Optional[TypeNode] = None


@dataclass(eq=False, kw_only=True)
class InstantiationType(TypeNode):
    type: TypeNode
    type_arguments: List[TypeAnnotation]


# Expressions


@dataclass(eq=False, kw_only=True)
class Expression(Node):
    pass


@dataclass(eq=False, kw_only=True)
class BoolExpression(Expression):
    value: bool


@dataclass(eq=False, kw_only=True)
class NilExpression(Expression):
    pass


@dataclass(eq=False, kw_only=True)
class StringExpression(Expression):
    value: str


@dataclass(eq=False, kw_only=True)
class StringTemplateExpression(Expression):
    values: List[str]
    expressions: List[Expression]


@dataclass(eq=False, kw_only=True)
class IntegerExpression(Expression):
    value: int
    base: int = 10
    literal: str = ""


@dataclass(eq=False, kw_only=True)
class FixedPointExpression(Expression):
    negative: bool
    literal: str


@dataclass(eq=False, kw_only=True)
class ArrayExpression(Expression):
    values: List[Expression]


@dataclass(eq=False, kw_only=True)
class DictionaryEntry:
    key: Expression
    value: Expression


@dataclass(eq=False, kw_only=True)
class DictionaryExpression(Expression):
    entries: List[DictionaryEntry]


@dataclass(eq=False, kw_only=True)
class IdentifierExpression(Expression):
    identifier: Identifier


@dataclass(eq=False, kw_only=True)
class Argument:
    label: Optional[str]
    expression: Expression


@dataclass(eq=False, kw_only=True)
class InvocationExpression(Expression):
    invoked: Expression
    type_arguments: List[TypeAnnotation]
    arguments: List[Argument]


@dataclass(eq=False, kw_only=True)
class MemberExpression(Expression):
    expression: Expression
    identifier: Identifier
    optional: bool = False


@dataclass(eq=False, kw_only=True)
class IndexExpression(Expression):
    target: Expression
    index: Union[Expression, TypeNode]


@dataclass(eq=False, kw_only=True)
class ConditionalExpression(Expression):
    test: Expression
    then: Expression
    otherwise: Expression


@dataclass(eq=False, kw_only=True)
class UnaryExpression(Expression):
    operation: str  # "-", "!", "<-"
    expression: Expression


@dataclass(eq=False, kw_only=True)
class BinaryExpression(Expression):
    operation: str
    left: Expression
    right: Expression


@dataclass(eq=False, kw_only=True)
class CastingExpression(Expression):
    expression: Expression
    operation: str  # "as", "as?", "as!"
    type_annotation: TypeAnnotation


@dataclass(eq=False, kw_only=True)
class CreateExpression(Expression):
    invocation: InvocationExpression


@dataclass(eq=False, kw_only=True)
class DestroyExpression(Expression):
    expression: Expression


@dataclass(eq=False, kw_only=True)
class AttachExpression(Expression):
    attachment: InvocationExpression
    base: Expression


@dataclass(eq=False, kw_only=True)
class ReferenceExpression(Expression):
    expression: Expression


@dataclass(eq=False, kw_only=True)
class ForceExpression(Expression):
    expression: Expression


@dataclass(eq=False, kw_only=True)
class PathExpression(Expression):
    domain: str
    identifier: Identifier


@dataclass(eq=False, kw_only=True)
class FunctionExpression(Expression):
    parameters: List["Parameter"]
    return_type: Optional[TypeAnnotation]
    body: "FunctionBlock"
    is_view: bool = False


# Statements


@dataclass(eq=False, kw_only=True)
class Statement(Node):
    pass


@dataclass(eq=False, kw_only=True)
class Block(Node):
    statements: List[Node]


@dataclass(eq=False, kw_only=True)
class Condition:
    test: Expression
    message: Optional[Expression] = None


@dataclass(eq=False, kw_only=True)
class EmitCondition:
    invocation: InvocationExpression


@dataclass(eq=False, kw_only=True)
class FunctionBlock(Node):
    block: Optional[Block]
    pre_conditions: List[Union[Condition, EmitCondition]] = field(default_factory=list)
    post_conditions: List[Union[Condition, EmitCondition]] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class ExpressionStatement(Statement):
    expression: Expression


@dataclass(eq=False, kw_only=True)
class ReturnStatement(Statement):
    expression: Optional[Expression] = None


@dataclass(eq=False, kw_only=True)
class BreakStatement(Statement):
    pass


@dataclass(eq=False, kw_only=True)
class ContinueStatement(Statement):
    pass


@dataclass(eq=False, kw_only=True)
class IfStatement(Statement):
    test: Union[Expression, "VariableDeclaration"]
    then: Block
    otherwise: Optional[Union[Block, "IfStatement"]] = None


@dataclass(eq=False, kw_only=True)
class WhileStatement(Statement):
    test: Expression
    block: Block


@dataclass(eq=False, kw_only=True)
class ForStatement(Statement):
    identifier: Identifier
    index: Optional[Identifier]
    value: Expression
    block: Block


@dataclass(eq=False, kw_only=True)
class EmitStatement(Statement):
    invocation: InvocationExpression


@dataclass(eq=False, kw_only=True)
class AssignmentStatement(Statement):
    target: Expression
    transfer: str  # "=", "<-", "<-!"
    value: Expression


@dataclass(eq=False, kw_only=True)
class SwapStatement(Statement):
    left: Expression
    right: Expression


@dataclass(eq=False, kw_only=True)
class SwitchCase:
    expression: Optional[Expression]  # None for default
    statements: List[Node]


@dataclass(eq=False, kw_only=True)
class SwitchStatement(Statement):
    expression: Expression
    cases: List[SwitchCase]


@dataclass(eq=False, kw_only=True)
class RemoveStatement(Statement):
    attachment: NominalType
    value: Expression


# Declarations


@dataclass(eq=False, kw_only=True)
class Declaration(Node):
    access: Access = field(default_factory=Access)
    docstring: Optional[str] = None


@dataclass(eq=False, kw_only=True)
class ImportDeclaration(Declaration):
    identifiers: List[Identifier]
    location: Location
    location_start: Position
    location_end: Position


@dataclass(eq=False, kw_only=True)
class PragmaDeclaration(Declaration):
    expression: Expression


@dataclass(eq=False, kw_only=True)
class Parameter(Node):
    label: Optional[str]
    identifier: Identifier
    type_annotation: TypeAnnotation


@dataclass(eq=False, kw_only=True)
class TypeParameter(Node):
    identifier: Identifier
    bound: Optional[TypeAnnotation] = None


@dataclass(eq=False, kw_only=True)
class FunctionDeclaration(Declaration):
    identifier: Identifier
    parameters: List[Parameter]
    return_type: Optional[TypeAnnotation]
    body: Optional[FunctionBlock]
    type_parameters: List[TypeParameter] = field(default_factory=list)
    is_view: bool = False
    is_static: bool = False
    is_native: bool = False


SPECIAL_FUNCTIONS = ("init", "destroy", "prepare", "execute")


@dataclass(eq=False, kw_only=True)
class SpecialFunctionDeclaration(FunctionDeclaration):
    kind: str = "init"


@dataclass(eq=False, kw_only=True)
class VariableDeclaration(Declaration):
    is_constant: bool
    identifier: Identifier
    type_annotation: Optional[TypeAnnotation]
    transfer: str
    value: Expression
    second_transfer: Optional[str] = None
    second_value: Optional[Expression] = None


@dataclass(eq=False, kw_only=True)
class FieldDeclaration(Declaration):
    variable_kind: str  # "let" or "var"
    identifier: Identifier
    type_annotation: TypeAnnotation


@dataclass(eq=False, kw_only=True)
class EnumCaseDeclaration(Declaration):
    identifier: Identifier


@dataclass(eq=False, kw_only=True)
class CompositeDeclaration(Declaration):
    kind: str  # contract, resource, struct, event, enum, attachment
    identifier: Identifier
    conformances: List[NominalType]
    members: List[Declaration]
    is_interface: bool = False
    base_type: Optional[NominalType] = None
    enum_raw_type: Optional[TypeNode] = None

    def fields(self) -> List[FieldDeclaration]:
        return [m for m in self.members if isinstance(m, FieldDeclaration)]

    def functions(self) -> List[FunctionDeclaration]:
        return [
            m
            for m in self.members
            if isinstance(m, FunctionDeclaration) and not isinstance(m, SpecialFunctionDeclaration)
        ]

    def special_functions(self) -> List[SpecialFunctionDeclaration]:
        return [m for m in self.members if isinstance(m, SpecialFunctionDeclaration)]


@dataclass(eq=False, kw_only=True)
class EntitlementDeclaration(Declaration):
    identifier: Identifier


@dataclass(eq=False, kw_only=True)
class EntitlementMappingDeclaration(Declaration):
    identifier: Identifier
    elements: List[Node]


@dataclass(eq=False, kw_only=True)
class TransactionDeclaration(Declaration):
    parameters: List[Parameter]
    fields: List[FieldDeclaration]
    prepare: Optional[SpecialFunctionDeclaration]
    pre_conditions: List[Union[Condition, EmitCondition]]
    execute: Optional[SpecialFunctionDeclaration]
    post_conditions: List[Union[Condition, EmitCondition]]


@dataclass(eq=False, kw_only=True)
class Program:
    declarations: List[Declaration]

    def import_declarations(self) -> List[ImportDeclaration]:
        return [d for d in self.declarations if isinstance(d, ImportDeclaration)]

    def transaction_declarations(self) -> List[TransactionDeclaration]:
        return [d for d in self.declarations if isinstance(d, TransactionDeclaration)]

    def sole_contract_declaration(self) -> Optional[CompositeDeclaration]:
        composites = [d for d in self.declarations if isinstance(d, CompositeDeclaration)]
        if len(composites) == 1 and composites[0].kind == "contract":
            return composites[0]
        return None

    def sole_transaction_declaration(self) -> Optional[TransactionDeclaration]:
        transactions = self.transaction_declarations()
        return transactions[0] if len(transactions) == 1 else None


_WALKABLE = (Node, Program, Argument, DictionaryEntry, Condition, EmitCondition, SwitchCase)


def walk(value) -> Iterator[Node]:
    """Yield every node at or beneath ``value``, depth first in source order."""
    if isinstance(value, list):
        for item in value:
            yield from walk(item)
        return
    if not isinstance(value, _WALKABLE):
        return
    if isinstance(value, Node):
        yield value
    for f in fields(value):
        if f.name not in ("start_pos", "end_pos"):
            yield from walk(getattr(value, f.name))
