"""Built-in values and types available to checked programs."""

from dataclasses import dataclass
from typing import Dict, Optional

from . import ast
from .locations import BLOCKCHAIN_HELPERS_LOCATION, CRYPTO_LOCATION, TEST_LOCATION, Location
from .sema import (
    ADDRESS,
    ANY_STRUCT,
    NEVER,
    PRIMITIVE_TYPES,
    STRING,
    UFIX64,
    UNKNOWN,
    VOID,
    CompositeType,
    Elaboration,
    EntitlementType,
    FunctionParameter,
    FunctionType,
    Member,
    OptionalType,
    ReferenceType,
    Type,
    Variable,
    unchecked_function,
)

ACCESS_ALL = ast.Access(kind=ast.ACCESS_ALL)

ENTITLEMENTS = (
    "Mutate",
    "Insert",
    "Remove",
    "Identity",
    "Storage",
    "SaveValue",
    "LoadValue",
    "CopyValue",
    "BorrowValue",
    "Contracts",
    "AddContract",
    "UpdateContract",
    "RemoveContract",
    "Keys",
    "AddKey",
    "RevokeKey",
    "Inbox",
    "PublishInboxCapability",
    "UnpublishInboxCapability",
    "ClaimInboxCapability",
    "Capabilities",
    "StorageCapabilities",
    "AccountCapabilities",
    "PublishCapability",
    "UnpublishCapability",
    "GetStorageCapabilityController",
    "IssueStorageCapabilityController",
    "GetAccountCapabilityController",
    "IssueAccountCapabilityController",
)

# Built-in composites whose members are not modelled in detail
OPAQUE_COMPOSITES = (
    ("struct", "Block"),
    ("struct", "PublicKey"),
    ("struct", "DeploymentResult"),
    ("struct", "Capability"),
    ("struct", "InclusiveRange"),
    ("struct", "StorageCapabilityController"),
    ("struct", "AccountCapabilityController"),
    ("enum", "HashAlgorithm"),
    ("enum", "SignatureAlgorithm"),
    ("resource", "AnyResourceAttachment"),
)

ACCOUNT_NESTED = ("Storage", "Contracts", "Keys", "Inbox", "Capabilities", "StorageCapabilities", "AccountCapabilities")


def _parameter(identifier: str, type_: Type, label: Optional[str] = None) -> FunctionParameter:
    return FunctionParameter(label=label, identifier=identifier, type=type_)


def _function(*parameters: FunctionParameter, return_type: Type = VOID, is_view: bool = False) -> FunctionType:
    return FunctionType(parameters=tuple(parameters), return_type=return_type, is_view=is_view)


def _opaque(kind: str, identifier: str, location: Optional[Location] = None) -> CompositeType:
    return CompositeType(kind=kind, identifier=identifier, location=location, complete=False)


def _account_type() -> CompositeType:
    account = _opaque("struct", "Account")
    for name in ACCOUNT_NESTED:
        nested = _opaque("struct", name)
        nested.container = account
        account.nested_types[name] = nested

    fields = {
        "address": ADDRESS,
        "balance": UFIX64,
        "availableBalance": UFIX64,
        "storage": ReferenceType(account.nested_types["Storage"]),
        "contracts": ReferenceType(account.nested_types["Contracts"]),
        "keys": ReferenceType(account.nested_types["Keys"]),
        "inbox": ReferenceType(account.nested_types["Inbox"]),
        "capabilities": ReferenceType(account.nested_types["Capabilities"]),
    }
    for name, type_ in fields.items():
        account.members[name] = Member(name=name, type=type_, kind="field", access=ACCESS_ALL, declared_in=account)
    return account


ACCOUNT = _account_type()


@dataclass
class StandardLibrary:
    values: Dict[str, Variable]
    types: Dict[str, Type]


def _base_types() -> Dict[str, Type]:
    types: Dict[str, Type] = dict(PRIMITIVE_TYPES)
    for kind, identifier in OPAQUE_COMPOSITES:
        types[identifier] = _opaque(kind, identifier)
    types["Account"] = ACCOUNT
    for identifier in ENTITLEMENTS:
        types[identifier] = EntitlementType(identifier)
    return types


def _base_values(types: Dict[str, Type]) -> Dict[str, Variable]:
    functions = {
        "assert": unchecked_function(VOID),
        "panic": _function(_parameter("message", STRING, label="_"), return_type=NEVER),
        "log": _function(_parameter("value", ANY_STRUCT, label="_")),
        "getCurrentBlock": _function(return_type=types["Block"], is_view=True),
        "getBlock": _function(_parameter("at", PRIMITIVE_TYPES["UInt64"]), return_type=OptionalType(types["Block"])),
        "getAccount": _function(_parameter("address", ADDRESS, label="_"), return_type=ReferenceType(ACCOUNT)),
        "unsafeRandom": _function(return_type=PRIMITIVE_TYPES["UInt64"]),
        "revertibleRandom": unchecked_function(UNKNOWN),
        "getTransactionIndex": _function(return_type=PRIMITIVE_TYPES["UInt32"]),
    }
    values = {name: Variable(name=name, type=type_, kind="function") for name, type_ in functions.items()}
    for contract in ("RLP", "BLS"):
        values[contract] = Variable(name=contract, type=_opaque("contract", contract), kind="constant")
    return values


def standard_library() -> StandardLibrary:
    """Values and types for contracts and transactions."""
    types = _base_types()
    return StandardLibrary(values=_base_values(types), types=types)


def script_standard_library() -> StandardLibrary:
    """Scripts additionally get `getAuthAccount`."""
    library = standard_library()
    library.values["getAuthAccount"] = Variable(
        name="getAuthAccount", type=unchecked_function(UNKNOWN), kind="function"
    )
    return library


def _contract_elaboration(location: Location, name: str) -> Elaboration:
    contract = _opaque("contract", name, location)
    elaboration = Elaboration(location=location)
    elaboration.values[name] = Variable(name=name, type=contract, kind="constant", access=ACCESS_ALL)
    elaboration.types[name] = contract
    return elaboration


BLOCKCHAIN_HELPERS_FUNCTIONS = {
    "getCurrentBlockHeight": PRIMITIVE_TYPES["UInt64"],
    "getFlowBalance": UFIX64,
    "mintFlow": VOID,
    "burnFlow": VOID,
    "executeScript": UNKNOWN,
}


def crypto_elaboration() -> Elaboration:
    return _contract_elaboration(CRYPTO_LOCATION, "Crypto")


def test_framework_elaboration() -> Elaboration:
    return _contract_elaboration(TEST_LOCATION, "Test")


def blockchain_helpers_elaboration() -> Elaboration:
    elaboration = Elaboration(location=BLOCKCHAIN_HELPERS_LOCATION)
    for name, return_type in BLOCKCHAIN_HELPERS_FUNCTIONS.items():
        elaboration.values[name] = Variable(
            name=name, type=unchecked_function(return_type), kind="function", access=ACCESS_ALL
        )
    return elaboration


BUILTIN_ELABORATIONS = {
    CRYPTO_LOCATION: crypto_elaboration,
    TEST_LOCATION: test_framework_elaboration,
    BLOCKCHAIN_HELPERS_LOCATION: blockchain_helpers_elaboration,
}

