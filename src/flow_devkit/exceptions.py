"""Custom exception classes for flow-devkit."""

from .cadence.errors import ImportResolutionError as CadenceImportResolutionError


class DevkitError(Exception):
    """Base exception for dependency manager and linter errors."""

    pass


class NetworkNotFoundError(DevkitError, ValueError):
    """Raised when a network is not recognized or has no gateway configured."""

    pass


class AccountNotFoundError(DevkitError, ValueError):
    """Raised when the requested account does not exist on the network."""

    pass


class NoContractsError(DevkitError, ValueError):
    """Raised when the requested account holds no contracts."""

    pass


class ContractNotFoundError(DevkitError, ValueError):
    """Raised when a contract is not deployed at the address, or not in the manifest."""

    pass


class ParseFailedError(DevkitError, ValueError):
    """Raised when contract source fetched from the chain cannot be parsed."""

    pass


class RemoteSourceConflictError(DevkitError, ValueError):
    """Raised when a dependency already exists with a different source."""

    pass


class InvalidSourceStringError(DevkitError, ValueError):
    """Raised when a source string is not of the form network://address.Contract."""

    pass


class ManifestError(DevkitError, ValueError):
    """Raised when the project manifest is malformed or violates its invariants."""

    pass


class ManifestNotFoundError(DevkitError, FileNotFoundError):
    """Raised when the project manifest file does not exist."""

    pass


class FileSystemError(DevkitError, OSError):
    """Raised when a file cannot be read or written."""

    pass


class GatewayError(DevkitError, RuntimeError):
    """Raised when the chain gateway cannot be reached or returns an error."""

    pass


class PromptCancelledError(DevkitError, RuntimeError):
    """Raised when the operator aborts an interactive prompt."""

    pass


class ImportResolutionError(DevkitError, CadenceImportResolutionError):
    """Raised when the linter cannot resolve an imported program."""

    pass
