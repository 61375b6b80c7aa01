"""Per-conversation confirmation state."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from pyra.core.types import (
    ConfirmationPhase,
    PendingCommand,
    PipelineStep,
    SecurityScanResult,
    TransactionReceipt,
)


@dataclass
class Session:
    """State for one conversation: zero or one pending command.

    A session is owned by its connection (see ``SessionStore``) and is
    passed explicitly into every orchestrator call.
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    phase: ConfirmationPhase = ConfirmationPhase.IDLE
    pending: PendingCommand | None = None
    confirmed: bool = False
    warning: SecurityScanResult | None = None
    last_receipt: TransactionReceipt | None = None
    last_error: str | None = None
    gate_trail: list[tuple[PipelineStep, bool]] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def stage(self, command: PendingCommand) -> None:
        """Install ``command`` as the only pending command."""
        self.pending = command
        self.confirmed = False
        self.warning = None
        self.last_error = None
        self.gate_trail = []
        self.phase = ConfirmationPhase.AWAITING_VERIFICATION

    def clear(self, phase: ConfirmationPhase = ConfirmationPhase.IDLE) -> None:
        self.pending = None
        self.confirmed = False
        self.warning = None
        self.phase = phase

    def snapshot(self) -> dict[str, Any]:
        pending = self.pending
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "confirmed": self.confirmed,
            "pending": None if pending is None else {
                "action": pending.action.value,
                "amount": pending.amount,
                "target": pending.target,
                "resolved_address": pending.resolved_address,
                "security_checks_passed": pending.security_checks_passed,
                "warning_acknowledged": pending.warning_acknowledged,
                "address_type": pending.address_type.value if pending.address_type else None,
                "contract_name": pending.contract_name,
            },
            "warning": self.warning.model_dump(mode="json") if self.warning else None,
            "last_receipt": self.last_receipt.model_dump() if self.last_receipt else None,
            "last_error": self.last_error,
        }


class SessionStore:
    """In-memory registry of live sessions; nothing survives a restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create(self) -> Session:
        session = Session()
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
