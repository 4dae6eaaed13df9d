"""Semantic checker for Cadence programs.

The checker resolves names and types, enforces member access control, checks
imports through a pluggable handler and records expression types in an
:class:`~flow_devkit.cadence.sema.Elaboration` for the analyzers. Whenever a
type cannot be determined precisely it falls back to ``UNKNOWN`` and stays
silent instead of reporting a possibly spurious error.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import ast
from .errors import (
    ArgumentCountError,
    AssignmentToConstantError,
    CadenceError,
    CheckerError,
    CyclicImportsError,
    ImportedProgramError,
    ImportResolutionError,
    IncorrectArgumentLabelError,
    InvalidAccessError,
    MissingArgumentLabelError,
    MissingReturnStatementError,
    NotDeclaredError,
    NotDeclaredMemberError,
    NotExportedError,
    Range,
    RedeclarationError,
    ResourceLossError,
    TypeMismatchError,
    UnresolvedImportError,
)
from .locations import AddressLocation, IdentifierLocation, Location, StringLocation
from .sema import (
    ADDRESS,
    BOOL,
    CHARACTER,
    FIXED_POINT_TYPE_NAMES,
    INT,
    INTEGER_TYPE_NAMES,
    META_TYPE,
    NEVER,
    PATH_TYPES,
    PRIMITIVE_TYPES,
    STRING,
    UNKNOWN,
    VOID,
    ArrayType,
    CapabilityType,
    CompositeType,
    DictionaryType,
    Elaboration,
    EntitlementType,
    FunctionParameter,
    FunctionType,
    IntersectionType,
    Member,
    OptionalType,
    PrimitiveType,
    ReferenceType,
    Type,
    TypeParameterType,
    UnknownType,
    Variable,
    is_known,
    is_subtype,
    unchecked_function,
)
from .stdlib import ACCESS_ALL, ACCOUNT, BUILTIN_ELABORATIONS, StandardLibrary, standard_library

logger = logging.getLogger(__name__)

ImportHandler = Callable[["Checker", Location, Range], Elaboration]
LocationHandler = Callable[[List[str], Location], Location]
AccountAccessHandler = Callable[["Checker", Optional[Location]], bool]

NUMBER_LITERAL_TYPES = {
    name
    for name, t in PRIMITIVE_TYPES.items()
    if name.startswith(("Int", "UInt", "Word", "Fix", "UFix")) or name in ("Number", "Integer")
}

COMPARISON_OPERATORS = ("<", "<=", ">", ">=", "==", "!=", "&&", "||")

# Members of every concrete number value besides getType and isInstance
NUMBER_VALUE_TYPE_NAMES = INTEGER_TYPE_NAMES + FIXED_POINT_TYPE_NAMES
SATURATING_FUNCTIONS = ("saturatingAdd", "saturatingSubtract", "saturatingMultiply", "saturatingDivide")

CONTRACT_ACCOUNT_TYPE = ReferenceType(ACCOUNT, ("Storage", "Keys", "Contracts", "Inbox", "Capabilities"))


@dataclass
class CheckerConfig:
    """Hooks that connect the checker to the environment it runs in.

    Attributes:
        standard_library: Base values and types.
        import_handler: Returns the elaboration of an imported location. May raise
            ImportResolutionError, or CheckerError when the imported program fails
            to check.
        location_handler: Maps an import's location before it is handed to the
            import handler. May raise ImportResolutionError to reject it.
        account_access_handler: Decides whether ``access(account)`` members
            declared at another location are accessible from the checked program.
    """

    standard_library: StandardLibrary
    import_handler: Optional[ImportHandler] = None
    location_handler: Optional[LocationHandler] = None
    account_access_handler: Optional[AccountAccessHandler] = None


class Scope:
    """Nested activation of values and types."""

    def __init__(self, parent: Optional["Scope"] = None):
        self.parent = parent
        self.values: Dict[str, Variable] = {}
        self.types: Dict[str, Type] = {}

    def find_value(self, name: str) -> Optional[Variable]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.values:
                return scope.values[name]
            scope = scope.parent
        return None

    def find_type(self, name: str) -> Optional[Type]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.types:
                return scope.types[name]
            scope = scope.parent
        return None


def _without_optional(t: Optional[Type]) -> Optional[Type]:
    while isinstance(t, OptionalType):
        t = t.type
    return t


def locations_in_same_account(first: Optional[Location], second: Optional[Location]) -> bool:
    if first == second:
        return True
    return (
        isinstance(first, AddressLocation)
        and isinstance(second, AddressLocation)
        and first.address == second.address
    )


class Checker:
    def __init__(self, program: ast.Program, location: Optional[Location], config: Optional[CheckerConfig] = None):
        self.program = program
        self.location = location
        self.config = config or CheckerConfig(standard_library=standard_library())
        self.elaboration = Elaboration(location=location, program=program)
        self.errors: List[CadenceError] = []

        self.base_scope = Scope()
        self.base_scope.values.update(self.config.standard_library.values)
        self.base_scope.types.update(self.config.standard_library.types)
        self.program_scope = Scope(self.base_scope)
        self.scope = self.program_scope

        self.composite_stack: List[CompositeType] = []
        self.return_types: List[Type] = []
        self._annotation_types: Dict[ast.TypeAnnotation, Type] = {}

    def sub_checker(self, program: ast.Program, location: Location) -> "Checker":
        """A checker for an imported program that shares this checker's configuration."""
        return Checker(program, location, self.config)

    def check(self) -> None:
        """Check the program.

        Raises:
            CheckerError: With every error found, after the whole program was checked.
        """
        logger.debug("Checking %s", self.location)
        self.elaboration.is_checking = True
        try:
            self._check_program()
        finally:
            self.elaboration.is_checking = False
        if self.errors:
            raise CheckerError(self.errors)

    def report(self, error: CadenceError) -> None:
        self.errors.append(error)

    # Scopes

    def _enter(self) -> Scope:
        self.scope = Scope(self.scope)
        return self.scope

    def _leave(self) -> None:
        self.scope = self.scope.parent

    def _declare_value(self, identifier: ast.Identifier, variable: Variable, kind: str = "variable") -> None:
        if identifier.name in self.scope.values:
            self.report(RedeclarationError(kind, identifier.name, identifier.start_pos, identifier.end_pos))
            return
        self.scope.values[identifier.name] = variable

    def _declare_type(self, identifier: ast.Identifier, type_: Type, kind: str = "type") -> None:
        if identifier.name in self.scope.types:
            self.report(RedeclarationError(kind, identifier.name, identifier.start_pos, identifier.end_pos))
            return
        self.scope.types[identifier.name] = type_

    # Program

    def _check_program(self) -> None:
        for declaration in self.program.import_declarations():
            self._check_import(declaration)

        imported_values = dict(self.program_scope.values)
        imported_types = dict(self.program_scope.types)

        composites = [d for d in self.program.declarations if isinstance(d, ast.CompositeDeclaration)]
        for declaration in self.program.declarations:
            if isinstance(declaration, (ast.EntitlementDeclaration, ast.EntitlementMappingDeclaration)):
                self._declare_type(
                    declaration.identifier, EntitlementType(declaration.identifier.name, self.location), "entitlement"
                )
        for declaration in composites:
            composite = self._declare_composite_type(declaration, None)
            self._declare_type(declaration.identifier, composite, declaration.kind)
        for declaration in composites:
            self._declare_members(declaration)
        for declaration in composites:
            composite = self.elaboration.composite_types[declaration]
            self._declare_value(
                declaration.identifier,
                self._composite_value(composite, declaration),
                declaration.kind,
            )
        for declaration in self.program.declarations:
            if isinstance(declaration, ast.FunctionDeclaration):
                self._declare_value(
                    declaration.identifier,
                    Variable(
                        name=declaration.identifier.name,
                        type=self._function_type(declaration),
                        kind="function",
                        access=declaration.access,
                        docstring=declaration.docstring,
                        declaration=declaration,
                    ),
                    "function",
                )

        for declaration in self.program.declarations:
            if isinstance(declaration, ast.CompositeDeclaration):
                self._check_composite(declaration)
            elif isinstance(declaration, ast.FunctionDeclaration):
                self._check_function(declaration)
            elif isinstance(declaration, ast.VariableDeclaration):
                self._check_variable(declaration)
            elif isinstance(declaration, ast.TransactionDeclaration):
                self._check_transaction(declaration)
            elif isinstance(declaration, ast.PragmaDeclaration):
                self._check_expression(declaration.expression)

        for name, variable in self.program_scope.values.items():
            if imported_values.get(name) is not variable:
                self.elaboration.values[name] = variable
        for name, type_ in self.program_scope.types.items():
            if imported_types.get(name) is not type_:
                self.elaboration.types[name] = type_

    # Imports

    def _check_import(self, declaration: ast.ImportDeclaration) -> None:
        location = declaration.location
        identifiers = [i.name for i in declaration.identifiers]
        start, end = declaration.location_start, declaration.location_end

        try:
            if self.config.location_handler is not None:
                location = self.config.location_handler(identifiers, location)
            elaboration = self._resolve_import(location, Range(start, end))
        except CheckerError:
            self.report(ImportedProgramError(str(location), start, end))
            self._declare_unresolved_import(declaration)
            return
        except ImportResolutionError as e:
            self.report(UnresolvedImportError(str(location), str(e), start, end))
            self._declare_unresolved_import(declaration)
            return

        if elaboration.is_checking:
            self.report(CyclicImportsError(str(location), start, end))
            self._declare_unresolved_import(declaration)
            return

        available = elaboration.exported_names()
        if not declaration.identifiers:
            self.program_scope.values.update(elaboration.values)
            self.program_scope.types.update(elaboration.types)
            return
        for identifier in declaration.identifiers:
            value = elaboration.values.get(identifier.name)
            type_ = elaboration.types.get(identifier.name)
            if value is None and type_ is None:
                self.report(
                    NotExportedError(identifier.name, str(location), available, identifier.start_pos, identifier.end_pos)
                )
                continue
            if value is not None:
                self.program_scope.values[identifier.name] = value
            if type_ is not None:
                self.program_scope.types[identifier.name] = type_

    def _declare_unresolved_import(self, declaration: ast.ImportDeclaration) -> None:
        # Imported names stay usable so one failed import is reported once
        names = [i.name for i in declaration.identifiers]
        location = declaration.location
        if not names and isinstance(location, (StringLocation, IdentifierLocation)):
            names = [Path(location.value).stem if isinstance(location, StringLocation) else location.value]
        for name in names:
            self.program_scope.values.setdefault(name, Variable(name=name, type=UNKNOWN, kind="constant"))
            self.program_scope.types.setdefault(name, UNKNOWN)

    def _resolve_import(self, location: Location, import_range: Range) -> Elaboration:
        if self.config.import_handler is not None:
            return self.config.import_handler(self, location, import_range)
        if location in BUILTIN_ELABORATIONS:
            return BUILTIN_ELABORATIONS[location]()
        raise ImportResolutionError("no import handler configured")

    # Declarations

    def _declare_composite_type(
        self, declaration: ast.CompositeDeclaration, container: Optional[CompositeType]
    ) -> CompositeType:
        composite = CompositeType(
            kind=declaration.kind,
            identifier=declaration.identifier.name,
            location=self.location,
            container=container,
            is_interface=declaration.is_interface,
            docstring=declaration.docstring,
        )
        self.elaboration.composite_types[declaration] = composite
        for member in declaration.members:
            if isinstance(member, ast.CompositeDeclaration):
                nested = self._declare_composite_type(member, composite)
                self._declare_nested(composite, member.identifier, nested)
            elif isinstance(member, (ast.EntitlementDeclaration, ast.EntitlementMappingDeclaration)):
                self._declare_nested(composite, member.identifier, EntitlementType(member.identifier.name, self.location))
        return composite

    def _declare_nested(self, composite: CompositeType, identifier: ast.Identifier, type_: Type) -> None:
        if identifier.name in composite.nested_types:
            self.report(RedeclarationError("type", identifier.name, identifier.start_pos, identifier.end_pos))
            return
        composite.nested_types[identifier.name] = type_

    def _composite_scope(self, composite: CompositeType) -> Scope:
        scope = self._enter()
        for name, nested in composite.nested_types.items():
            scope.types[name] = nested
            if isinstance(nested, CompositeType):
                scope.values[name] = Variable(name=name, type=self._constructor_type(nested), kind=nested.kind)
        return scope

    def _declare_members(self, declaration: ast.CompositeDeclaration) -> None:
        composite = self.elaboration.composite_types[declaration]
        self._composite_scope(composite)
        try:
            for conformance in declaration.conformances:
                conformance_type = self._resolve_type(conformance)
                if isinstance(conformance_type, CompositeType):
                    composite.conformances.append(conformance_type)
            if declaration.base_type is not None:
                self._resolve_type(declaration.base_type)

            for member in declaration.members:
                if isinstance(member, ast.FieldDeclaration):
                    self._add_member(
                        composite,
                        member.identifier,
                        Member(
                            name=member.identifier.name,
                            type=self._resolve_annotation(member.type_annotation),
                            kind="field",
                            access=member.access,
                            declared_in=composite,
                            is_constant=member.variable_kind == "let",
                            docstring=member.docstring,
                        ),
                    )
                elif isinstance(member, ast.SpecialFunctionDeclaration):
                    if member.kind == "init":
                        composite.initializer = FunctionType(
                            parameters=self._parameters(member.parameters), return_type=composite
                        )
                elif isinstance(member, ast.FunctionDeclaration):
                    self._add_member(
                        composite,
                        member.identifier,
                        Member(
                            name=member.identifier.name,
                            type=self._function_type(member),
                            kind="function",
                            access=member.access,
                            declared_in=composite,
                            docstring=member.docstring,
                        ),
                    )
                elif isinstance(member, ast.EnumCaseDeclaration):
                    self._add_member(
                        composite,
                        member.identifier,
                        Member(
                            name=member.identifier.name,
                            type=composite,
                            kind="field",
                            access=ACCESS_ALL,
                            declared_in=composite,
                            docstring=member.docstring,
                        ),
                    )
                elif isinstance(member, ast.CompositeDeclaration):
                    self._declare_members(member)
        finally:
            self._leave()

    def _add_member(self, composite: CompositeType, identifier: ast.Identifier, member: Member) -> None:
        if identifier.name in composite.members:
            self.report(RedeclarationError(member.kind, identifier.name, identifier.start_pos, identifier.end_pos))
            return
        composite.members[identifier.name] = member

    def _constructor_type(self, composite: CompositeType) -> Type:
        if composite.kind in ("contract", "enum") or composite.is_interface:
            return composite
        if composite.kind == "event" or not composite.complete:
            return unchecked_function(composite)
        if composite.initializer is not None:
            return composite.initializer
        return FunctionType(parameters=(), return_type=composite)

    def _composite_value(self, composite: CompositeType, declaration: ast.CompositeDeclaration) -> Variable:
        return Variable(
            name=composite.identifier,
            type=self._constructor_type(composite),
            kind=composite.kind,
            access=declaration.access,
            docstring=declaration.docstring,
            declaration=declaration,
        )

    def _parameters(self, parameters: List[ast.Parameter]) -> tuple:
        return tuple(
            FunctionParameter(
                label=p.label,
                identifier=p.identifier.name,
                type=self._resolve_annotation(p.type_annotation),
            )
            for p in parameters
        )

    def _function_type(self, declaration: ast.FunctionDeclaration) -> FunctionType:
        self._enter()
        try:
            for type_parameter in declaration.type_parameters:
                self.scope.types[type_parameter.identifier.name] = TypeParameterType(type_parameter.identifier.name)
            return_type = (
                self._resolve_annotation(declaration.return_type) if declaration.return_type is not None else VOID
            )
            return FunctionType(
                parameters=self._parameters(declaration.parameters),
                return_type=return_type,
                is_view=declaration.is_view,
            )
        finally:
            self._leave()

    # Bodies

    def _check_composite(self, declaration: ast.CompositeDeclaration) -> None:
        composite = self.elaboration.composite_types[declaration]
        self.composite_stack.append(composite)
        self._composite_scope(composite)
        try:
            for member in declaration.members:
                if isinstance(member, ast.CompositeDeclaration):
                    self._check_composite(member)
                elif isinstance(member, ast.FunctionDeclaration):
                    self._check_function(member, self_type=composite)
                elif isinstance(member, ast.FieldDeclaration):
                    self._resolve_annotation(member.type_annotation)
        finally:
            self._leave()
            self.composite_stack.pop()

    def _check_function(self, declaration: ast.FunctionDeclaration, self_type: Optional[Type] = None) -> None:
        self._enter()
        try:
            for type_parameter in declaration.type_parameters:
                self.scope.types[type_parameter.identifier.name] = TypeParameterType(type_parameter.identifier.name)
            if self_type is not None:
                self.scope.values["self"] = Variable(name="self", type=self_type, kind="self")
                if isinstance(self_type, CompositeType) and self_type.kind == "attachment":
                    self.scope.values["base"] = Variable(name="base", type=UNKNOWN, kind="constant")
            return_type = VOID
            if declaration.return_type is not None:
                return_type = self._resolve_annotation(declaration.return_type)
            if declaration.body is not None:
                in_interface = isinstance(self_type, CompositeType) and self_type.is_interface
                self._check_function_body(
                    declaration.parameters, declaration.body, return_type, requires_statements=not in_interface
                )
        finally:
            self._leave()

    def _declare_parameters(self, parameters: List[ast.Parameter]) -> None:
        for parameter in parameters:
            self._declare_value(
                parameter.identifier,
                Variable(
                    name=parameter.identifier.name,
                    type=self._resolve_annotation(parameter.type_annotation),
                    kind="parameter",
                ),
                "parameter",
            )

    def _check_function_body(
        self,
        parameters: List[ast.Parameter],
        body: ast.FunctionBlock,
        return_type: Type,
        requires_statements: bool = True,
    ) -> None:
        self._enter()
        self.return_types.append(return_type)
        try:
            self._declare_parameters(parameters)
            self._check_conditions(body.pre_conditions)
            if body.post_conditions:
                self._enter()
                try:
                    if not (isinstance(return_type, PrimitiveType) and return_type.type_name == "Void"):
                        self.scope.values["result"] = Variable(name="result", type=return_type, kind="constant")
                    self.scope.values["before"] = Variable(name="before", type=unchecked_function(), kind="function")
                    self._check_conditions(body.post_conditions)
                finally:
                    self._leave()
            if body.block is not None:
                self._check_block(body.block)
                self._check_definite_return(body.block, return_type, requires_statements)
        finally:
            self.return_types.pop()
            self._leave()

    def _check_conditions(self, conditions: list) -> None:
        for condition in conditions:
            if isinstance(condition, ast.EmitCondition):
                self._check_expression(condition.invocation)
                continue
            self._check_expression(condition.test)
            if condition.message is not None:
                self._check_expression(condition.message)

    def _check_transaction(self, declaration: ast.TransactionDeclaration) -> None:
        transaction = CompositeType(kind="transaction", identifier="transaction", location=self.location)
        self._enter()
        try:
            self._declare_parameters(declaration.parameters)
            for field_declaration in declaration.fields:
                self._add_member(
                    transaction,
                    field_declaration.identifier,
                    Member(
                        name=field_declaration.identifier.name,
                        type=self._resolve_annotation(field_declaration.type_annotation),
                        kind="field",
                        access=ACCESS_ALL,
                        declared_in=transaction,
                        is_constant=field_declaration.variable_kind == "let",
                    ),
                )
            self.scope.values["self"] = Variable(name="self", type=transaction, kind="self")
            self.composite_stack.append(transaction)
            try:
                if declaration.prepare is not None and declaration.prepare.body is not None:
                    self._check_function_body(declaration.prepare.parameters, declaration.prepare.body, VOID)
                self._check_conditions(declaration.pre_conditions)
                if declaration.execute is not None and declaration.execute.body is not None:
                    self._check_function_body([], declaration.execute.body, VOID)
                self._check_conditions(declaration.post_conditions)
            finally:
                self.composite_stack.pop()
        finally:
            self._leave()

    # Statements

    def _check_block(self, block: ast.Block) -> None:
        self._enter()
        try:
            for statement in block.statements:
                self._check_statement(statement)
            self._check_resource_loss(block.statements)
        finally:
            self._leave()

    def _check_statement(self, statement: ast.Node) -> None:
        if isinstance(statement, ast.ExpressionStatement):
            self._check_expression(statement.expression)
        elif isinstance(statement, ast.VariableDeclaration):
            self._check_variable(statement)
        elif isinstance(statement, ast.AssignmentStatement):
            self._check_assignment(statement)
        elif isinstance(statement, ast.SwapStatement):
            self._check_expression(statement.left)
            self._check_expression(statement.right)
        elif isinstance(statement, ast.ReturnStatement):
            if statement.expression is not None:
                expected = self.return_types[-1] if self.return_types else None
                actual = self._check_expression(statement.expression, expected)
                self._expect_type(actual, expected, statement.expression)
        elif isinstance(statement, ast.IfStatement):
            self._check_if(statement)
        elif isinstance(statement, ast.WhileStatement):
            self._check_expression(statement.test)
            self._check_block(statement.block)
        elif isinstance(statement, ast.ForStatement):
            self._check_for(statement)
        elif isinstance(statement, ast.EmitStatement):
            self._check_expression(statement.invocation)
        elif isinstance(statement, ast.SwitchStatement):
            self._check_expression(statement.expression)
            for case in statement.cases:
                if case.expression is not None:
                    self._check_expression(case.expression)
                self._enter()
                try:
                    for inner in case.statements:
                        self._check_statement(inner)
                    self._check_resource_loss(case.statements)
                finally:
                    self._leave()
        elif isinstance(statement, ast.RemoveStatement):
            self._resolve_type(statement.attachment)
            self._check_expression(statement.value)
        elif isinstance(statement, ast.FunctionDeclaration):
            self._declare_value(
                statement.identifier,
                Variable(name=statement.identifier.name, type=self._function_type(statement), kind="function"),
                "function",
            )
            self._check_function(statement)
        elif isinstance(statement, ast.CompositeDeclaration):
            composite = self._declare_composite_type(statement, None)
            self._declare_type(statement.identifier, composite, statement.kind)
            self._declare_members(statement)
            self._declare_value(statement.identifier, self._composite_value(composite, statement), statement.kind)
            self._check_composite(statement)

    def _check_variable(self, declaration: ast.VariableDeclaration) -> None:
        declared_type = None
        if declaration.type_annotation is not None:
            declared_type = self._resolve_annotation(declaration.type_annotation)
        value_type = self._check_expression(declaration.value, declared_type)
        self._expect_type(value_type, declared_type, declaration.value)
        if declaration.second_value is not None:
            self._check_expression(declaration.second_value)
        self._declare_value(
            declaration.identifier,
            Variable(
                name=declaration.identifier.name,
                type=declared_type or value_type,
                kind="constant" if declaration.is_constant else "variable",
                is_constant=declaration.is_constant,
                access=declaration.access,
                docstring=declaration.docstring,
                declaration=declaration,
            ),
            "constant" if declaration.is_constant else "variable",
        )

    def _check_assignment(self, statement: ast.AssignmentStatement) -> None:
        target = statement.target
        target_type = self._check_expression(target)
        if isinstance(target, ast.IdentifierExpression):
            variable = self.scope.find_value(target.identifier.name)
            if variable is not None and variable.is_constant:
                self.report(AssignmentToConstantError(target.identifier.name, target.start_pos, target.end_pos))
        expected = target_type if is_known(target_type) else None
        value_type = self._check_expression(statement.value, expected)
        self._expect_type(value_type, expected, statement.value)

    def _check_if(self, statement: ast.IfStatement) -> None:
        self._enter()
        try:
            test = statement.test
            if isinstance(test, ast.VariableDeclaration):
                value_type = self._check_expression(test.value)
                if isinstance(value_type, OptionalType):
                    value_type = value_type.type
                if test.type_annotation is not None:
                    value_type = self._resolve_annotation(test.type_annotation)
                self._declare_value(
                    test.identifier,
                    Variable(name=test.identifier.name, type=value_type, kind="constant", is_constant=test.is_constant),
                )
            else:
                self._check_expression(test, BOOL)
            self._check_block(statement.then)
        finally:
            self._leave()
        if isinstance(statement.otherwise, ast.IfStatement):
            self._check_if(statement.otherwise)
        elif isinstance(statement.otherwise, ast.Block):
            self._check_block(statement.otherwise)

    def _check_for(self, statement: ast.ForStatement) -> None:
        value_type = self._check_expression(statement.value)
        element_type: Type = UNKNOWN
        if isinstance(value_type, ReferenceType):
            value_type = value_type.type
        if isinstance(value_type, ArrayType):
            element_type = value_type.type
        elif value_type == STRING:
            element_type = CHARACTER
        self._enter()
        try:
            if statement.index is not None:
                self._declare_value(statement.index, Variable(name=statement.index.name, type=INT, kind="constant"))
            self._declare_value(
                statement.identifier, Variable(name=statement.identifier.name, type=element_type, kind="constant")
            )
            self._check_block(statement.block)
        finally:
            self._leave()

    def _check_definite_return(self, block: ast.Block, return_type: Type, requires_statements: bool) -> None:
        if return_type == VOID or (not block.statements and not requires_statements):
            return
        if not self._definitely_halts(block.statements):
            self.report(MissingReturnStatementError(block.end_pos, block.end_pos))

    def _definitely_halts(self, statements: List[ast.Node]) -> bool:
        """Whether control never reaches the end of the statements: they return, panic or loop forever."""
        for statement in statements:
            if isinstance(statement, ast.ReturnStatement):
                return True
            if isinstance(statement, ast.ExpressionStatement):
                if self.elaboration.expression_type(statement.expression) == NEVER:
                    return True
            elif isinstance(statement, ast.IfStatement):
                if self._if_halts(statement):
                    return True
            elif isinstance(statement, ast.WhileStatement):
                if isinstance(statement.test, ast.BoolExpression) and statement.test.value:
                    return True
            elif isinstance(statement, ast.SwitchStatement):
                if any(case.expression is None for case in statement.cases) and all(
                    self._definitely_halts(case.statements) for case in statement.cases
                ):
                    return True
        return False

    def _if_halts(self, statement: ast.IfStatement) -> bool:
        if not self._definitely_halts(statement.then.statements):
            return False
        if isinstance(statement.otherwise, ast.IfStatement):
            return self._if_halts(statement.otherwise)
        if isinstance(statement.otherwise, ast.Block):
            return self._definitely_halts(statement.otherwise.statements)
        return False

    def _check_resource_loss(self, statements: List[ast.Node]) -> None:
        # A resource declared in a block must be used by a later statement of it
        for index, statement in enumerate(statements):
            if not isinstance(statement, ast.VariableDeclaration) or statement.transfer == "=":
                continue
            identifier = statement.identifier
            variable = self.scope.values.get(identifier.name)
            if variable is None or variable.declaration is not statement or not variable.type.is_resource:
                continue
            used = any(
                isinstance(node, ast.IdentifierExpression) and node.identifier.name == identifier.name
                for node in ast.walk(statements[index + 1 :])
            )
            if not used:
                self.report(ResourceLossError(identifier.name, identifier.start_pos, identifier.end_pos))

    # Expressions

    def _expect_type(self, actual: Type, expected: Optional[Type], expression: ast.Expression) -> None:
        if expected is None or is_subtype(actual, expected):
            return
        self.report(TypeMismatchError(str(expected), str(actual), expression.start_pos, expression.end_pos))

    def _check_expression(self, expression: ast.Expression, expected: Optional[Type] = None) -> Type:
        result = self._visit_expression(expression, expected)
        self.elaboration.expression_types[expression] = result
        return result

    def _visit_expression(self, expression: ast.Expression, expected: Optional[Type]) -> Type:
        if isinstance(expression, ast.BoolExpression):
            return BOOL
        if isinstance(expression, ast.NilExpression):
            return OptionalType(NEVER)
        if isinstance(expression, (ast.IntegerExpression, ast.FixedPointExpression, ast.StringExpression)):
            # Literals take the type of the optional they are stored in
            expected = _without_optional(expected)
        if isinstance(expression, ast.IntegerExpression):
            if isinstance(expected, PrimitiveType) and expected.type_name in NUMBER_LITERAL_TYPES:
                return expected
            if expected == ADDRESS:
                return ADDRESS
            return INT
        if isinstance(expression, ast.FixedPointExpression):
            if isinstance(expected, PrimitiveType) and expected.type_name in ("Fix64", "UFix64"):
                return expected
            return PRIMITIVE_TYPES["Fix64" if expression.negative else "UFix64"]
        if isinstance(expression, ast.StringExpression):
            if expected == CHARACTER and len(expression.value) == 1:
                return CHARACTER
            return STRING
        if isinstance(expression, ast.StringTemplateExpression):
            for inner in expression.expressions:
                self._check_expression(inner)
            return STRING
        if isinstance(expression, ast.PathExpression):
            return PATH_TYPES.get(expression.domain, UNKNOWN)
        if isinstance(expression, ast.ArrayExpression):
            return self._check_array(expression, expected)
        if isinstance(expression, ast.DictionaryExpression):
            return self._check_dictionary(expression, expected)
        if isinstance(expression, ast.IdentifierExpression):
            return self._check_identifier(expression)
        if isinstance(expression, ast.InvocationExpression):
            return self._check_invocation(expression)
        if isinstance(expression, ast.MemberExpression):
            return self._check_member(expression)
        if isinstance(expression, ast.IndexExpression):
            return self._check_index(expression)
        if isinstance(expression, ast.ConditionalExpression):
            self._check_expression(expression.test, BOOL)
            then = self._check_expression(expression.then, expected)
            otherwise = self._check_expression(expression.otherwise, expected)
            return then if then == otherwise else UNKNOWN
        if isinstance(expression, ast.UnaryExpression):
            operand = self._check_expression(expression.expression, expected)
            return BOOL if expression.operation == "!" else operand
        if isinstance(expression, ast.BinaryExpression):
            return self._check_binary(expression, expected)
        if isinstance(expression, ast.CastingExpression):
            return self._check_casting(expression)
        if isinstance(expression, ast.ForceExpression):
            inner = self._check_expression(expression.expression)
            if isinstance(inner, OptionalType):
                return inner.type
            return inner
        if isinstance(expression, ast.CreateExpression):
            return self._check_expression(expression.invocation)
        if isinstance(expression, ast.DestroyExpression):
            self._check_expression(expression.expression)
            return VOID
        if isinstance(expression, ast.AttachExpression):
            self._check_expression(expression.attachment)
            self._check_expression(expression.base)
            return UNKNOWN
        if isinstance(expression, ast.ReferenceExpression):
            self._check_expression(expression.expression)
            if isinstance(expected, (ReferenceType, OptionalType)):
                return expected
            return UNKNOWN
        if isinstance(expression, ast.FunctionExpression):
            function_type = FunctionType(
                parameters=self._parameters(expression.parameters),
                return_type=self._resolve_annotation(expression.return_type) if expression.return_type else VOID,
                is_view=expression.is_view,
            )
            self._check_function_body(expression.parameters, expression.body, function_type.return_type)
            return function_type
        return UNKNOWN

    def _check_array(self, expression: ast.ArrayExpression, expected: Optional[Type]) -> Type:
        expected = _without_optional(expected)
        element_expected = expected.type if isinstance(expected, ArrayType) else None
        element_types = []
        for value in expression.values:
            element_type = self._check_expression(value, element_expected)
            self._expect_type(element_type, element_expected, value)
            element_types.append(element_type)
        if isinstance(expected, ArrayType):
            return expected
        if element_types and all(t == element_types[0] for t in element_types) and is_known(element_types[0]):
            return ArrayType(element_types[0])
        return ArrayType(UNKNOWN)

    def _check_dictionary(self, expression: ast.DictionaryExpression, expected: Optional[Type]) -> Type:
        expected = _without_optional(expected)
        key_expected = expected.key_type if isinstance(expected, DictionaryType) else None
        value_expected = expected.value_type if isinstance(expected, DictionaryType) else None
        for entry in expression.entries:
            self._expect_type(self._check_expression(entry.key, key_expected), key_expected, entry.key)
            self._expect_type(self._check_expression(entry.value, value_expected), value_expected, entry.value)
        if isinstance(expected, DictionaryType):
            return expected
        return DictionaryType(UNKNOWN, UNKNOWN)

    def _check_identifier(self, expression: ast.IdentifierExpression) -> Type:
        identifier = expression.identifier
        variable = self.scope.find_value(identifier.name)
        if variable is not None:
            return variable.type
        type_ = self.scope.find_type(identifier.name)
        if type_ is not None and not isinstance(type_, EntitlementType):
            if isinstance(type_, CompositeType):
                return self._constructor_type(type_)
            return unchecked_function(type_)
        self.report(NotDeclaredError("variable", identifier.name, identifier.start_pos, identifier.end_pos))
        return UNKNOWN

    def _check_invocation(self, expression: ast.InvocationExpression) -> Type:
        for type_argument in expression.type_arguments:
            self._resolve_annotation(type_argument)
        invoked = expression.invoked
        invoked_type = self._check_expression(invoked)

        parameters = invoked_type.parameters if isinstance(invoked_type, FunctionType) else None
        for index, argument in enumerate(expression.arguments):
            if parameters is None or index >= len(parameters):
                self._check_expression(argument.expression)
                continue
            parameter = parameters[index]
            expected = parameter.type if is_known(parameter.type) else None
            actual = self._check_expression(argument.expression, expected)
            self._check_argument_label(parameter, argument)
            self._expect_type(actual, expected, argument.expression)

        if isinstance(invoked, ast.IdentifierExpression) and invoked.identifier.name == "before":
            if expression.arguments:
                return self.elaboration.expression_type(expression.arguments[0].expression)
        if isinstance(invoked_type, FunctionType):
            if parameters is not None and len(parameters) != len(expression.arguments):
                self.report(
                    ArgumentCountError(len(parameters), len(expression.arguments), expression.start_pos, expression.end_pos)
                )
            return invoked_type.return_type if is_known(invoked_type.return_type) else UNKNOWN
        return UNKNOWN

    def _check_argument_label(self, parameter: FunctionParameter, argument: ast.Argument) -> None:
        # Parameters of function types are unnamed and take no labels
        if not parameter.identifier:
            return
        required = parameter.label if parameter.label is not None else parameter.identifier
        start, end = argument.expression.start_pos, argument.expression.end_pos
        if required == "_":
            if argument.label is not None:
                self.report(IncorrectArgumentLabelError(None, argument.label, start, end))
        elif argument.label is None:
            self.report(MissingArgumentLabelError(required, start, end))
        elif argument.label != required:
            self.report(IncorrectArgumentLabelError(required, argument.label, start, end))

    def _check_index(self, expression: ast.IndexExpression) -> Type:
        target = self._check_expression(expression.target)
        if isinstance(expression.index, ast.Expression):
            self._check_expression(expression.index)
        if isinstance(target, ReferenceType):
            target = target.type
        if isinstance(target, ArrayType):
            return target.type
        if isinstance(target, DictionaryType):
            return OptionalType(target.value_type) if is_known(target.value_type) else UNKNOWN
        return UNKNOWN

    def _check_binary(self, expression: ast.BinaryExpression, expected: Optional[Type]) -> Type:
        operation = expression.operation
        if operation in COMPARISON_OPERATORS:
            left = self._check_expression(expression.left)
            self._check_expression(expression.right, left if is_known(left) else None)
            return BOOL
        if operation == "??":
            left = self._check_expression(expression.left)
            inner = left.type if isinstance(left, OptionalType) else None
            right = self._check_expression(expression.right, inner if inner is not None and is_known(inner) else None)
            if inner is not None and inner == right:
                return right
            return UNKNOWN
        left = self._check_expression(expression.left, expected)
        right = self._check_expression(expression.right, left if is_known(left) else expected)
        if left == right and is_known(left):
            return left
        return UNKNOWN

    def _check_casting(self, expression: ast.CastingExpression) -> Type:
        target = self._resolve_annotation(expression.type_annotation)
        inner = self._check_expression(expression.expression, target if expression.operation == "as" else None)
        self.elaboration.casting_types[expression] = (inner, target)
        if expression.operation == "as?":
            return OptionalType(target)
        return target

    # Members

    def _check_member(self, expression: ast.MemberExpression) -> Type:
        receiver = self._check_expression(expression.expression)
        optional_chain = False
        if expression.optional and isinstance(receiver, OptionalType):
            receiver = receiver.type
            optional_chain = True
        if isinstance(receiver, ReferenceType):
            receiver = receiver.type

        member_type = self._member_type(receiver, expression)
        if optional_chain and is_known(member_type) and not isinstance(member_type, OptionalType):
            return OptionalType(member_type)
        return member_type

    def _member_type(self, receiver: Type, expression: ast.MemberExpression) -> Type:
        identifier = expression.identifier
        name = identifier.name

        candidates: List[CompositeType] = []
        if isinstance(receiver, CompositeType):
            candidates = [receiver]
        elif isinstance(receiver, IntersectionType):
            candidates = [t for t in receiver.types if isinstance(t, CompositeType)]

        for composite in candidates:
            member = composite.find_member(name)
            if member is not None:
                self.elaboration.member_accesses[expression] = member
                self._check_member_access(member, identifier)
                return member.type

        implicit = self._implicit_member(receiver, name)
        if implicit is not None:
            return implicit

        if isinstance(receiver, PrimitiveType) and receiver.type_name in NUMBER_VALUE_TYPE_NAMES:
            return self._number_member(receiver, identifier)

        if not isinstance(receiver, CompositeType):
            return UNKNOWN

        nested = receiver.nested_types.get(name)
        if isinstance(nested, CompositeType):
            return self._constructor_type(nested)
        if nested is not None:
            return UNKNOWN

        if receiver.is_fully_known():
            self.report(NotDeclaredMemberError(str(receiver), name, identifier.start_pos, identifier.end_pos))
        return UNKNOWN

    def _number_member(self, receiver: PrimitiveType, identifier: ast.Identifier) -> Type:
        name = identifier.name
        if name == "toString":
            return FunctionType(parameters=(), return_type=STRING, is_view=True)
        if name == "toBigEndianBytes":
            return FunctionType(parameters=(), return_type=ArrayType(PRIMITIVE_TYPES["UInt8"]), is_view=True)
        if name in SATURATING_FUNCTIONS:
            return FunctionType(
                parameters=(FunctionParameter(label="_", identifier="other", type=receiver),),
                return_type=receiver,
                is_view=True,
            )
        self.report(NotDeclaredMemberError(str(receiver), name, identifier.start_pos, identifier.end_pos))
        return UNKNOWN

    def _implicit_member(self, receiver: Type, name: str) -> Optional[Type]:
        if isinstance(receiver, UnknownType):
            return None
        if name == "getType":
            return FunctionType(parameters=(), return_type=META_TYPE, is_view=True)
        if name == "isInstance":
            return FunctionType(
                parameters=(FunctionParameter(label="_", identifier="type", type=META_TYPE),),
                return_type=BOOL,
                is_view=True,
            )
        if not isinstance(receiver, CompositeType) or receiver.kind == "transaction":
            return None
        if name == "account" and receiver.kind == "contract":
            return CONTRACT_ACCOUNT_TYPE
        if name == "uuid":
            return PRIMITIVE_TYPES["UInt64"]
        if name == "owner":
            return OptionalType(ReferenceType(ACCOUNT))
        if name in ("forEachAttachment", "rawValue", "base"):
            return UNKNOWN
        return None

    def _check_member_access(self, member: Member, identifier: ast.Identifier) -> None:
        if not self._is_accessible(member):
            self.report(
                InvalidAccessError(
                    member.name,
                    member.kind,
                    member.access.keyword(),
                    identifier.start_pos,
                    identifier.end_pos,
                )
            )

    def _is_accessible(self, member: Member) -> bool:
        declared_in = member.declared_in
        kind = member.access.kind

        if kind == ast.ACCESS_SELF:
            return any(
                c is declared_in or declared_in in c.conformances for c in self.composite_stack
            )
        if kind == ast.ACCESS_CONTRACT:
            contract = declared_in.containing_contract() or declared_in
            if contract is declared_in and contract.kind != "contract":
                return any(c is declared_in for c in self.composite_stack)
            return any(c.containing_contract() is contract for c in self.composite_stack)
        if kind == ast.ACCESS_ACCOUNT:
            if locations_in_same_account(self.location, declared_in.location):
                return True
            handler = self.config.account_access_handler
            return handler is not None and handler(self, declared_in.location)
        return True

    # Types

    def _resolve_annotation(self, annotation: Optional[ast.TypeAnnotation]) -> Type:
        if annotation is None:
            return UNKNOWN
        if annotation not in self._annotation_types:
            self._annotation_types[annotation] = self._resolve_type(annotation.type)
        return self._annotation_types[annotation]

    def _resolve_type(self, node: ast.TypeNode) -> Type:
        if isinstance(node, ast.NominalType):
            return self._resolve_nominal(node)
        if isinstance(node, ast.OptionalType):
            return OptionalType(self._resolve_type(node.type))
        if isinstance(node, ast.VariableSizedType):
            return ArrayType(self._resolve_type(node.type))
        if isinstance(node, ast.ConstantSizedType):
            return ArrayType(self._resolve_type(node.type), node.size)
        if isinstance(node, ast.DictionaryType):
            return DictionaryType(self._resolve_type(node.key_type), self._resolve_type(node.value_type))
        if isinstance(node, ast.ReferenceType):
            authorization = ()
            if node.authorization is not None:
                for entitlement in node.authorization.entitlements:
                    self._resolve_nominal(entitlement)
                authorization = tuple(e.qualified_name() for e in node.authorization.entitlements)
            return ReferenceType(self._resolve_type(node.type), authorization)
        if isinstance(node, ast.IntersectionType):
            if node.legacy_type is not None:
                self._resolve_type(node.legacy_type)
            return IntersectionType(tuple(self._resolve_type(t) for t in node.types))
        if isinstance(node, ast.InstantiationType):
            base = self._resolve_type(node.type)
            arguments = [self._resolve_annotation(a) for a in node.type_arguments]
            if isinstance(node.type, ast.NominalType) and node.type.qualified_name() == "Capability":
                return CapabilityType(arguments[0] if arguments else None)
            return base if isinstance(base, CompositeType) else UNKNOWN
        if isinstance(node, ast.FunctionType):
            return FunctionType(
                parameters=tuple(
                    FunctionParameter(label=None, identifier="", type=self._resolve_annotation(p))
                    for p in node.parameter_types
                ),
                return_type=self._resolve_annotation(node.return_type) if node.return_type else VOID,
                is_view=node.is_view,
            )
        return UNKNOWN

    def _resolve_nominal(self, node: ast.NominalType) -> Type:
        identifier = node.identifier
        type_ = self.scope.find_type(identifier.name)
        if type_ is None:
            self.report(NotDeclaredError("type", identifier.name, identifier.start_pos, identifier.end_pos))
            return UNKNOWN
        for nested in node.nested:
            if isinstance(type_, CompositeType):
                inner = type_.nested_types.get(nested.name)
                if inner is None:
                    if type_.is_fully_known():
                        self.report(
                            NotDeclaredError("type", node.qualified_name(), node.start_pos, node.end_pos)
                        )
                    return UNKNOWN
                type_ = inner
            else:
                return UNKNOWN
        return type_
