"""Semantic model produced by the checker: types, members, variables and elaborations."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import ast
from .locations import Location


class Type:
    """Base for checker types. ``str(t)`` is the Cadence spelling of the type."""

    is_resource = False

    def __str__(self) -> str:
        return self.name()

    def name(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class UnknownType(Type):
    """Placeholder used wherever the checker cannot infer a precise type."""

    def name(self) -> str:
        return "<<unknown>>"


UNKNOWN = UnknownType()


@dataclass(frozen=True)
class PrimitiveType(Type):
    type_name: str
    resource: bool = False

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return self.resource

    def name(self) -> str:
        return self.type_name


@dataclass(frozen=True)
class OptionalType(Type):
    type: Type

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return self.type.is_resource

    def name(self) -> str:
        return f"{self.type}?"


@dataclass(frozen=True)
class ArrayType(Type):
    type: Type
    size: Optional[int] = None

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return self.type.is_resource

    def name(self) -> str:
        if self.size is None:
            return f"[{self.type}]"
        return f"[{self.type}; {self.size}]"


@dataclass(frozen=True)
class DictionaryType(Type):
    key_type: Type
    value_type: Type

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return self.value_type.is_resource

    def name(self) -> str:
        return f"{{{self.key_type}: {self.value_type}}}"


@dataclass(frozen=True)
class ReferenceType(Type):
    type: Type
    authorization: Tuple[str, ...] = ()

    def name(self) -> str:
        if self.authorization:
            return f"auth({', '.join(self.authorization)}) &{self.type}"
        return f"&{self.type}"


@dataclass(frozen=True)
class IntersectionType(Type):
    types: Tuple[Type, ...]

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return any(t.is_resource for t in self.types)

    def name(self) -> str:
        return "{" + ", ".join(str(t) for t in self.types) + "}"


@dataclass(frozen=True)
class CapabilityType(Type):
    borrow_type: Optional[Type] = None

    def name(self) -> str:
        return f"Capability<{self.borrow_type}>" if self.borrow_type else "Capability"


@dataclass(frozen=True)
class FunctionParameter:
    label: Optional[str]
    identifier: str
    type: Type


@dataclass(frozen=True)
class FunctionType(Type):
    """A function signature. ``parameters`` is None when the arity is not checked."""

    parameters: Optional[Tuple[FunctionParameter, ...]]
    return_type: Type
    is_view: bool = False

    def name(self) -> str:
        params = ", ".join(str(p.type) for p in self.parameters or ())
        prefix = "view " if self.is_view else ""
        return f"{prefix}fun({params}): {self.return_type}"


def unchecked_function(return_type: Type = UNKNOWN) -> FunctionType:
    return FunctionType(parameters=None, return_type=return_type)


@dataclass(eq=False)
class Member:
    name: str
    type: Type
    kind: str  # "field" or "function"
    access: ast.Access
    declared_in: "CompositeType"
    is_constant: bool = True
    docstring: Optional[str] = None


@dataclass(eq=False)
class CompositeType(Type):
    """A contract, resource, struct, event, enum or attachment (or an interface of those).

    ``complete`` is False for built-in types whose members are not modelled;
    unknown members are only reported on complete types.
    """

    kind: str
    identifier: str
    location: Optional[Location] = None
    container: Optional["CompositeType"] = None
    is_interface: bool = False
    complete: bool = True
    members: Dict[str, Member] = field(default_factory=dict)
    nested_types: Dict[str, Type] = field(default_factory=dict)
    conformances: List["CompositeType"] = field(default_factory=list)
    initializer: Optional[FunctionType] = None
    docstring: Optional[str] = None

    @property
    def is_resource(self) -> bool:  # type: ignore[override]
        return self.kind in ("resource", "attachment")

    def qualified_identifier(self) -> str:
        if self.container is not None:
            return f"{self.container.qualified_identifier()}.{self.identifier}"
        return self.identifier

    def name(self) -> str:
        return self.qualified_identifier()

    def containing_contract(self) -> Optional["CompositeType"]:
        composite: Optional[CompositeType] = self
        while composite is not None:
            if composite.kind == "contract":
                return composite
            composite = composite.container
        return None

    def find_member(self, name: str) -> Optional[Member]:
        if name in self.members:
            return self.members[name]
        for conformance in self.conformances:
            member = conformance.find_member(name)
            if member is not None:
                return member
        return None

    def is_fully_known(self) -> bool:
        return self.complete and all(c.is_fully_known() for c in self.conformances)


@dataclass(eq=False)
class EntitlementType(Type):
    identifier: str
    location: Optional[Location] = None

    def name(self) -> str:
        return self.identifier


@dataclass(eq=False)
class TypeParameterType(Type):
    identifier: str

    def name(self) -> str:
        return self.identifier


def _primitive(name: str, resource: bool = False) -> PrimitiveType:
    return PrimitiveType(name, resource)


INTEGER_TYPE_NAMES = (
    "Int",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Int128",
    "Int256",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UInt128",
    "UInt256",
    "Word8",
    "Word16",
    "Word32",
    "Word64",
    "Word128",
    "Word256",
)
FIXED_POINT_TYPE_NAMES = ("Fix64", "UFix64")
ABSTRACT_NUMBER_TYPE_NAMES = (
    "Number",
    "SignedNumber",
    "Integer",
    "SignedInteger",
    "FixedPoint",
    "SignedFixedPoint",
)

INT = _primitive("Int")
UFIX64 = _primitive("UFix64")
STRING = _primitive("String")
CHARACTER = _primitive("Character")
BOOL = _primitive("Bool")
ADDRESS = _primitive("Address")
VOID = _primitive("Void")
NEVER = _primitive("Never")
ANY_STRUCT = _primitive("AnyStruct")
ANY_RESOURCE = _primitive("AnyResource", resource=True)
META_TYPE = _primitive("Type")
PATH = _primitive("Path")
STORAGE_PATH = _primitive("StoragePath")
PUBLIC_PATH = _primitive("PublicPath")
PRIVATE_PATH = _primitive("PrivatePath")
CAPABILITY_PATH = _primitive("CapabilityPath")

PATH_TYPES = {"storage": STORAGE_PATH, "public": PUBLIC_PATH, "private": PRIVATE_PATH}

PRIMITIVE_TYPES: Dict[str, Type] = {
    t.type_name: t
    for t in (
        [_primitive(n) for n in INTEGER_TYPE_NAMES + FIXED_POINT_TYPE_NAMES + ABSTRACT_NUMBER_TYPE_NAMES]
        + [
            STRING,
            CHARACTER,
            BOOL,
            ADDRESS,
            VOID,
            NEVER,
            ANY_STRUCT,
            ANY_RESOURCE,
            _primitive("AnyStructAttachment"),
            _primitive("AnyResourceAttachment", resource=True),
            META_TYPE,
            PATH,
            STORAGE_PATH,
            PUBLIC_PATH,
            PRIVATE_PATH,
            CAPABILITY_PATH,
        ]
    )
}


@dataclass(eq=False)
class Variable:
    """A value declared in some scope: a constant, variable, function, parameter or type value."""

    name: str
    type: Type
    kind: str
    is_constant: bool = True
    access: ast.Access = field(default_factory=ast.Access)
    docstring: Optional[str] = None
    declaration: Optional[ast.Node] = None


@dataclass(eq=False)
class Elaboration:
    """The result of checking one program, consumed by importers and analyzers."""

    location: Optional[Location]
    program: Optional[ast.Program] = None
    is_checking: bool = False
    values: Dict[str, Variable] = field(default_factory=dict)
    types: Dict[str, Type] = field(default_factory=dict)
    expression_types: Dict[ast.Expression, Type] = field(default_factory=dict)
    casting_types: Dict[ast.CastingExpression, Tuple[Type, Type]] = field(default_factory=dict)
    member_accesses: Dict[ast.MemberExpression, Member] = field(default_factory=dict)
    composite_types: Dict[ast.CompositeDeclaration, CompositeType] = field(default_factory=dict)

    def exported_names(self) -> List[str]:
        return sorted(set(self.values) | set(self.types))

    def expression_type(self, expression: ast.Expression) -> Type:
        return self.expression_types.get(expression, UNKNOWN)


def is_known(t: Type) -> bool:
    if isinstance(t, UnknownType):
        return False
    if isinstance(t, (OptionalType, ArrayType)):
        return is_known(t.type)
    if isinstance(t, DictionaryType):
        return is_known(t.key_type) and is_known(t.value_type)
    if isinstance(t, ReferenceType):
        return is_known(t.type)
    if isinstance(t, TypeParameterType):
        return False
    return True


NUMBER_TYPE_NAMES = INTEGER_TYPE_NAMES + FIXED_POINT_TYPE_NAMES + ABSTRACT_NUMBER_TYPE_NAMES
PATH_TYPE_NAMES = ("Path", "StoragePath", "PublicPath", "PrivatePath", "CapabilityPath")
TOP_TYPE_NAMES = ("AnyStruct", "AnyResource", "AnyStructAttachment", "AnyResourceAttachment")

# Types compared structurally; any other pairing is assumed compatible
_COMPARABLE = (PrimitiveType, OptionalType, ArrayType, DictionaryType, CompositeType)


def _same_composite(first: CompositeType, second: CompositeType) -> bool:
    # Programs checked twice produce distinct but equivalent composites
    return first is second or (
        first.kind == second.kind
        and first.location == second.location
        and first.qualified_identifier() == second.qualified_identifier()
    )


def is_subtype(sub: Type, sup: Type) -> bool:
    """
    Conservative subtyping: False only when ``sub`` is known not to be a ``sup``.

    Unknown, generic, function, intersection and capability types, interfaces
    and built-in types without modelled members are all compatible.

    Args:
        sub: Type of the value
        sup: Type the value is used as

    Returns:
        Whether a value of type ``sub`` may be used where ``sup`` is expected
    """
    if not is_known(sub) or not is_known(sup) or sub == sup or sub == NEVER:
        return True
    if isinstance(sup, PrimitiveType) and sup.type_name in TOP_TYPE_NAMES:
        return True
    if isinstance(sup, OptionalType):
        return is_subtype(sub.type if isinstance(sub, OptionalType) else sub, sup.type)
    if isinstance(sup, ReferenceType) and isinstance(sub, ReferenceType):
        return is_subtype(sub.type, sup.type)
    if not isinstance(sub, _COMPARABLE) or not isinstance(sup, _COMPARABLE):
        return True

    if isinstance(sub, CompositeType) and not sub.is_fully_known():
        return True
    if isinstance(sup, CompositeType):
        if not sup.complete or sup.is_interface:
            return True
        return isinstance(sub, CompositeType) and _same_composite(sub, sup)
    if isinstance(sup, PrimitiveType) and isinstance(sub, PrimitiveType):
        if sup.type_name in ABSTRACT_NUMBER_TYPE_NAMES:
            return sub.type_name in NUMBER_TYPE_NAMES
        if sup.type_name in PATH_TYPE_NAMES:
            return sub.type_name in PATH_TYPE_NAMES
        return False
    if isinstance(sup, ArrayType) and isinstance(sub, ArrayType):
        return is_subtype(sub.type, sup.type)
    if isinstance(sup, DictionaryType) and isinstance(sub, DictionaryType):
        return is_subtype(sub.key_type, sup.key_type) and is_subtype(sub.value_type, sup.value_type)
    return False
