"""Error taxonomy for the guarded command pipeline.

Gate-level failures are normally *returned* as a failed ``GateResult``
carrying a ``FailureKind``; the exception classes below are raised at
the edges (providers, orchestrator state checks, dispatcher) and are
converted into speakable messages before they reach the front-end.
"""

from __future__ import annotations

from pyra.core.types import FailureKind


class PyraError(Exception):
    """Base error with a stable code and a human-speakable message."""

    code: str = "PYRA_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParseAmbiguity(PyraError):
    """The front-end handed over a command that cannot be parsed unambiguously."""

    code = "PARSE_AMBIGUITY"


class ResolutionFailure(PyraError):
    code = "RESOLUTION_FAILURE"


class InvalidAddressFormat(PyraError):
    code = "INVALID_ADDRESS_FORMAT"


class UnverifiedSource(PyraError):
    code = "UNVERIFIED_SOURCE"


class SecurityBlock(PyraError):
    code = "SECURITY_BLOCK"


class SecurityWarning(PyraError):
    code = "SECURITY_WARNING"


class ProviderUnavailable(PyraError):
    """An external collaborator could not be reached or answered garbage."""

    code = "PROVIDER_UNAVAILABLE"

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class StateError(PyraError):
    """A protocol step was requested out of order."""

    code = "STATE_ERROR"


class TransactionFailed(PyraError):
    code = "TRANSACTION_FAILED"


_FAILURE_ERRORS: dict[FailureKind, type[PyraError]] = {
    FailureKind.RESOLUTION_FAILURE: ResolutionFailure,
    FailureKind.INVALID_ADDRESS_FORMAT: InvalidAddressFormat,
    FailureKind.UNVERIFIED_SOURCE: UnverifiedSource,
    FailureKind.SECURITY_BLOCK: SecurityBlock,
    FailureKind.SECURITY_WARNING: SecurityWarning,
}


def error_for_failure(kind: FailureKind, message: str) -> PyraError:
    """Build the taxonomy error matching a failed gate result."""
    if kind == FailureKind.PROVIDER_UNAVAILABLE:
        return ProviderUnavailable("gate", message)
    return _FAILURE_ERRORS[kind](message)
