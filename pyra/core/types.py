"""Shared enums and types used across the pipeline."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class Action(str, enum.Enum):
    """Transaction actions a guarded command may request."""

    DEPOSIT = "deposit"
    SWAP = "swap"
    SEND = "send"
    INVEST = "invest"


class ConfirmationPhase(str, enum.Enum):
    """Phase of a session's confirmation protocol."""

    IDLE = "IDLE"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    AWAITING_ACKNOWLEDGEMENT = "AWAITING_ACKNOWLEDGEMENT"
    AWAITING_EXECUTION_CONFIRMATION = "AWAITING_EXECUTION_CONFIRMATION"
    EXECUTED = "EXECUTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ConfirmationPhase.EXECUTED, ConfirmationPhase.ABORTED)


class ScanDecision(str, enum.Enum):
    """Decision returned by a security scan provider."""

    ALLOW = "ALLOW"
    WARN = "WARN"
    BLOCK = "BLOCK"
    ESCALATE = "ESCALATE"
    OFFLINE = "OFFLINE"


class PipelineStep(str, enum.Enum):
    """Observable steps of the guarded command pipeline."""

    VERIFICATION = "VERIFICATION"
    NAME_RESOLUTION = "NAME_RESOLUTION"
    VALIDATION = "VALIDATION"
    CONTRACT_DETECTION = "CONTRACT_DETECTION"
    SOURCE = "SOURCE"
    SECURITY_SCAN = "SECURITY_SCAN"
    EXECUTION = "EXECUTION"


class StepState(str, enum.Enum):
    """State of a pipeline step as shown to observers."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    WARN = "WARN"
    EXECUTED = "EXECUTED"


class EventType(str, enum.Enum):
    GATE_UPDATE = "GATE_UPDATE"
    SCAN_RESULT = "SCAN_RESULT"


class FailureKind(str, enum.Enum):
    """Why a gate refused to let a command through."""

    RESOLUTION_FAILURE = "RESOLUTION_FAILURE"
    INVALID_ADDRESS_FORMAT = "INVALID_ADDRESS_FORMAT"
    UNVERIFIED_SOURCE = "UNVERIFIED_SOURCE"
    SECURITY_BLOCK = "SECURITY_BLOCK"
    SECURITY_WARNING = "SECURITY_WARNING"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"


class AddressType(str, enum.Enum):
    EOA = "EOA"
    CONTRACT = "CONTRACT"


# ── Pipeline state ───────────────────────────────────────────────────────────


@dataclass
class PendingCommand:
    """A parsed command awaiting confirmation, checks and execution.

    Gates fill in ``resolved_address``/``address_type``/``contract_name``
    as the chain progresses; the orchestrator owns the two flags.
    """

    action: Action
    amount: str
    target: str
    resolved_address: str | None = None
    security_checks_passed: bool = False
    warning_acknowledged: bool = False
    address_type: AddressType | None = None
    contract_name: str = ""

    def describe(self) -> str:
        return f"{self.action.value} {self.amount} into {self.target}"


@dataclass(frozen=True)
class GateResult:
    """Outcome of a single gate evaluation."""

    passed: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    failure: FailureKind | None = None
    requires_acknowledgement: bool = False

    @classmethod
    def ok(cls, message: str, **data: Any) -> "GateResult":
        return cls(passed=True, message=message, data=data)

    @classmethod
    def fail(cls, kind: FailureKind, message: str, **data: Any) -> "GateResult":
        return cls(passed=False, message=message, data=data, failure=kind)


# ── Schemas ──────────────────────────────────────────────────────────────────


class SecurityScanResult(BaseModel):
    """Normalised result of a security scan."""

    decision: ScanDecision
    reason: str = ""
    risk_score: float = 0.0
    summary: str = ""
    issues: list[str] = Field(default_factory=list)

    @property
    def requires_acknowledgement(self) -> bool:
        return self.decision in (ScanDecision.WARN, ScanDecision.ESCALATE, ScanDecision.OFFLINE)

    @property
    def is_offline(self) -> bool:
        return self.decision == ScanDecision.OFFLINE


class TransactionReceipt(BaseModel):
    """Receipt returned by the dispatcher, identical for real and simulated runs."""

    model_config = ConfigDict(frozen=True)

    hash: str
    simulated: bool
    to: str = ""
    amount: str = ""


class ProgressEvent(BaseModel):
    """Observational event broadcast on every gate/phase transition."""

    type: EventType = EventType.GATE_UPDATE
    session_id: str = ""
    step: PipelineStep
    state: StepState
    detail: str | None = None
    issues: list[str] | None = None
    action: str | None = None
    amount: str | None = None
    target: str | None = None
    timestamp: float = Field(default_factory=time.time)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
