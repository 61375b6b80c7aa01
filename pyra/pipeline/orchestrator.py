"""Guarded command orchestrator: confirmation protocol plus the gate chain.

Protocol flow for one command:

1. VERIFY: restate the parsed command and wait for a spoken confirmation
2. CHECK: run the gates in order, halting at the first failure:
   name resolution → address validation → contract detection →
   source verification → security scan (the last two for contracts only)
3. ACKNOWLEDGE: only after a WARN/ESCALATE/OFFLINE scan
4. EXECUTE: dispatch the transfer once every gate has passed

Every terminal outcome clears the pending command.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from pyra.core.errors import (
    ParseAmbiguity,
    PyraError,
    StateError,
    TransactionFailed,
    error_for_failure,
)
from pyra.core.types import (
    Action,
    AddressType,
    ConfirmationPhase,
    EventType,
    FailureKind,
    GateResult,
    PendingCommand,
    PipelineStep,
    ProgressEvent,
    StepState,
)
from pyra.execution.amounts import parse_amount
from pyra.execution.dispatcher import TransactionDispatcher
from pyra.gates import (
    AddressValidationGate,
    ContractDetectionGate,
    Gate,
    NameResolutionGate,
    SecurityScanGate,
    SourceVerificationGate,
)
from pyra.pipeline.commands import (
    CheckCommand,
    CommandStatus,
    ExecuteCommand,
    GuardedCommand,
    ToolCall,
    ToolResponse,
    VerifyCommand,
    parse_tool_call,
)
from pyra.pipeline.events import EventBroadcaster, emit_safely
from pyra.pipeline.session import Session
from pyra.pipeline.utterance import Intent, classify_utterance

logger = logging.getLogger(__name__)


class GuardedCommandPipeline:
    """Drives verify → check → execute for one session at a time."""

    def __init__(
        self,
        name_gate: NameResolutionGate,
        address_gate: AddressValidationGate,
        contract_gate: ContractDetectionGate,
        source_gate: SourceVerificationGate,
        scan_gate: SecurityScanGate,
        dispatcher: TransactionDispatcher,
        broadcaster: EventBroadcaster | None = None,
        gate_timeout: float = 20.0,
    ) -> None:
        self.name_gate = name_gate
        self.address_gate = address_gate
        self.contract_gate = contract_gate
        self.source_gate = source_gate
        self.scan_gate = scan_gate
        self.dispatcher = dispatcher
        self.broadcaster = broadcaster
        self.gate_timeout = gate_timeout

    # ── Tool surface ─────────────────────────────────────────────────────────

    async def handle(self, session: Session, call: ToolCall) -> ToolResponse:
        """Single entry point for the front-end's tool call."""
        async with session.lock:
            try:
                command = parse_tool_call(call)
                return await self._dispatch(session, command)
            except PyraError as exc:
                logger.info(
                    "Tool call %s rejected: %s", call.step.value, exc.message,
                    extra={"session_id": session.session_id},
                )
                return ToolResponse(
                    status=CommandStatus.ERROR,
                    message=exc.message,
                    data={"error_code": exc.code, "phase": session.phase.value},
                )

    async def respond(self, session: Session, utterance: str) -> ToolResponse:
        """Route a free-form user utterance according to the current phase."""
        async with session.lock:
            try:
                return await self._respond(session, utterance, allow_execute=True)
            except PyraError as exc:
                return ToolResponse(
                    status=CommandStatus.ERROR,
                    message=exc.message,
                    data={"error_code": exc.code, "phase": session.phase.value},
                )

    async def _dispatch(self, session: Session, command: GuardedCommand) -> ToolResponse:
        handlers: dict[type, Callable[[Session, GuardedCommand], Awaitable[ToolResponse]]] = {
            VerifyCommand: self._on_verify,
            CheckCommand: self._on_check,
            ExecuteCommand: self._on_execute,
        }
        return await handlers[type(command)](session, command)

    async def _on_verify(self, session: Session, command: VerifyCommand) -> ToolResponse:
        return await self.verify(session, command.action, command.amount, command.target)

    async def _on_check(self, session: Session, command: CheckCommand) -> ToolResponse:
        if command.utterance is None:
            return await self.check(session)
        return await self._respond(session, command.utterance, allow_execute=False)

    async def _on_execute(self, session: Session, command: ExecuteCommand) -> ToolResponse:
        if command.utterance is None:
            return await self.execute(session)
        intent = classify_utterance(command.utterance)
        if intent == Intent.REJECT:
            return await self.reset(session)
        if intent == Intent.CONFIRM:
            return await self.execute(session)
        if session.pending is not None and session.phase == ConfirmationPhase.AWAITING_EXECUTION_CONFIRMATION:
            return ToolResponse(
                status=CommandStatus.CHECKS_PASSED, message=self._ready_message(session.pending)
            )
        raise StateError("I need a clear 'execute' from you before sending anything.")

    async def _respond(self, session: Session, utterance: str, allow_execute: bool) -> ToolResponse:
        intent = classify_utterance(utterance)
        logger.debug(
            "Utterance classified as %s in %s", intent.value, session.phase.value,
            extra={"session_id": session.session_id},
        )
        if intent == Intent.REJECT:
            return await self.reset(session)

        pending = session.pending
        if pending is None:
            return ToolResponse(
                status=CommandStatus.PENDING,
                message="There is no pending command. What would you like to do?",
            )

        if session.phase == ConfirmationPhase.AWAITING_VERIFICATION:
            if intent == Intent.CONFIRM:
                await self.confirm(session)
                return await self.check(session)
            return ToolResponse(
                status=CommandStatus.NEEDS_VERIFICATION,
                message=f"Please say yes to confirm or no to cancel. {self._verification_prompt(pending)}",
            )

        if session.phase == ConfirmationPhase.AWAITING_ACKNOWLEDGEMENT:
            if intent == Intent.ACKNOWLEDGE:
                return await self.acknowledge(session)
            return self._acknowledgement_reminder(session)

        if session.phase == ConfirmationPhase.AWAITING_EXECUTION_CONFIRMATION:
            if intent == Intent.CONFIRM and allow_execute:
                return await self.execute(session)
            return ToolResponse(
                status=CommandStatus.CHECKS_PASSED,
                message=self._ready_message(pending),
            )

        raise StateError("I am still working on the previous step. Please wait a moment.")

    # ── Protocol steps ───────────────────────────────────────────────────────

    async def verify(
        self, session: Session, action: Action | str, amount: str, target: str
    ) -> ToolResponse:
        """Stage a command and ask the user to confirm it. Runs no gates."""
        try:
            action = Action(action.strip().lower())
        except ValueError as exc:
            raise ParseAmbiguity(f"I did not understand the action '{action}'.") from exc
        parse_amount(amount)

        if session.pending is not None:
            if session.confirmed:
                raise StateError(
                    "A command is already in progress. Say 'cancel' before starting a new one."
                )
            logger.info(
                "Replacing unconfirmed command: %s", session.pending.describe(),
                extra={"session_id": session.session_id},
            )
            await self._emit(session, PipelineStep.VERIFICATION, StepState.FAILED, "Replaced by a new command")
            session.clear()

        pending = PendingCommand(action=action, amount=amount, target=target)
        session.stage(pending)
        logger.info(
            "Staged command: %s", pending.describe(),
            extra={"session_id": session.session_id, "step": PipelineStep.VERIFICATION.value},
        )
        await self._emit_event(session, ProgressEvent(
            step=PipelineStep.VERIFICATION,
            state=StepState.PENDING,
            action=action.value,
            amount=amount,
            target=target,
        ))
        return ToolResponse(
            status=CommandStatus.NEEDS_VERIFICATION,
            message=self._verification_prompt(pending),
            data={"action": action.value, "amount": amount, "target": target},
        )

    async def confirm(self, session: Session) -> None:
        """Record the user's "yes" to the restated command."""
        if session.pending is None or session.phase != ConfirmationPhase.AWAITING_VERIFICATION:
            raise StateError("There is no command waiting for confirmation.")
        session.confirmed = True
        await self._emit(session, PipelineStep.VERIFICATION, StepState.PASSED, "Confirmed by user")

    async def check(self, session: Session) -> ToolResponse:
        """Run the gate chain for the confirmed pending command."""
        pending = session.pending
        if pending is None:
            raise StateError("There is no pending command to check. Please tell me what you want to do first.")
        if session.phase == ConfirmationPhase.AWAITING_ACKNOWLEDGEMENT:
            return self._acknowledgement_reminder(session)
        if session.phase == ConfirmationPhase.AWAITING_EXECUTION_CONFIRMATION:
            return ToolResponse(status=CommandStatus.CHECKS_PASSED, message=self._ready_message(pending))
        if not session.confirmed:
            raise StateError("Please confirm the command before I run the security checks.")

        session.gate_trail = []

        result = await self._run_gate(session, self.name_gate, pending.target)
        if not result.passed:
            return await self._abort(session, self.name_gate, result)
        pending.resolved_address = result.data["address"]

        result = await self._run_gate(session, self.address_gate, pending.resolved_address)
        if not result.passed:
            return await self._abort(session, self.address_gate, result)

        result = await self._run_gate(session, self.contract_gate, pending.resolved_address)
        if not result.passed:
            return await self._abort(session, self.contract_gate, result)
        pending.address_type = result.data.get("address_type")

        if pending.address_type == AddressType.EOA:
            for skipped in (PipelineStep.SOURCE, PipelineStep.SECURITY_SCAN):
                await self._emit(session, skipped, StepState.PASSED, "Skipped: target is an EOA")
            return await self._checks_passed(session)

        result = await self._run_gate(session, self.source_gate, pending.resolved_address)
        if not result.passed:
            return await self._abort(session, self.source_gate, result)
        pending.contract_name = result.data.get("contract_name", "")

        result = await self._run_gate(session, self.scan_gate, result.data["source_code"])
        scan = result.data.get("scan")
        if scan is not None:
            await self._emit_event(session, ProgressEvent(
                type=EventType.SCAN_RESULT,
                step=PipelineStep.SECURITY_SCAN,
                state=self._state_for(result),
                detail=f"{scan.decision.value}: {scan.summary}",
                issues=scan.issues or None,
            ))

        if result.requires_acknowledgement:
            session.warning = scan
            session.phase = ConfirmationPhase.AWAITING_ACKNOWLEDGEMENT
            logger.warning(
                "Scan requires acknowledgement: %s", result.message,
                extra={"session_id": session.session_id, "step": PipelineStep.SECURITY_SCAN.value},
            )
            return ToolResponse(
                status=CommandStatus.NEEDS_ACKNOWLEDGEMENT,
                message=result.message,
                data=self._failure_data(self.scan_gate, result),
            )
        if not result.passed:
            return await self._abort(session, self.scan_gate, result)

        return await self._checks_passed(session)

    async def acknowledge(self, session: Session) -> ToolResponse:
        """Accept a scan warning and move on to execution confirmation."""
        pending = session.pending
        if pending is None or session.phase != ConfirmationPhase.AWAITING_ACKNOWLEDGEMENT:
            raise StateError("There is no security warning to acknowledge.")

        pending.warning_acknowledged = True
        session.gate_trail.append((PipelineStep.SECURITY_SCAN, True))
        logger.warning(
            "User acknowledged scan warning for %s", pending.resolved_address,
            extra={"session_id": session.session_id},
        )
        await self._emit(session, PipelineStep.SECURITY_SCAN, StepState.PASSED, "Warning acknowledged by user")
        response = await self._checks_passed(session)
        response.message = f"Warning acknowledged. {response.message}"
        return response

    async def execute(self, session: Session) -> ToolResponse:
        """Dispatch the transfer for a fully checked command."""
        pending = session.pending
        if (
            pending is None
            or session.phase != ConfirmationPhase.AWAITING_EXECUTION_CONFIRMATION
            or not pending.security_checks_passed
            or not pending.resolved_address
        ):
            raise StateError(
                "I cannot execute yet. The command has to be confirmed and pass all security checks first."
            )

        await self._emit(session, PipelineStep.EXECUTION, StepState.RUNNING)
        try:
            receipt = await self.dispatcher.execute(pending.resolved_address, pending.amount)
        except TransactionFailed as exc:
            logger.error(
                "Transaction failed: %s", exc.message, extra={"session_id": session.session_id}
            )
            session.last_error = exc.code
            session.clear(ConfirmationPhase.ABORTED)
            await self._emit(session, PipelineStep.EXECUTION, StepState.FAILED, exc.message)
            return ToolResponse(
                status=CommandStatus.ERROR,
                message=f"The transaction failed. {exc.message}",
                data={"error_code": exc.code},
            )
        except Exception:
            session.clear(ConfirmationPhase.ABORTED)
            raise

        session.last_receipt = receipt
        session.clear(ConfirmationPhase.EXECUTED)
        await self._emit(session, PipelineStep.EXECUTION, StepState.EXECUTED, receipt.hash)

        message = f"Transaction submitted. Hash: {receipt.hash}."
        if receipt.simulated:
            message += " This was a simulated transaction; no real funds moved."
        return ToolResponse(
            status=CommandStatus.SUCCESS,
            message=message,
            data={"receipt": receipt.model_dump()},
        )

    async def reset(self, session: Session) -> ToolResponse:
        """Universal cancel: drop whatever is pending and return to IDLE."""
        if session.pending is None:
            session.clear()
            return ToolResponse(
                status=CommandStatus.ABORTED,
                message="Nothing is pending. What would you like to do?",
            )

        was_verifying = session.phase == ConfirmationPhase.AWAITING_VERIFICATION
        logger.info(
            "Command cancelled in %s: %s", session.phase.value, session.pending.describe(),
            extra={"session_id": session.session_id},
        )
        session.clear()
        await self._emit(session, PipelineStep.VERIFICATION, StepState.FAILED, "Cancelled by user")
        if was_verifying:
            message = "Okay, I did not get that right. Please tell me the command again."
        else:
            message = "Okay, I cancelled the command. Nothing was executed."
        return ToolResponse(status=CommandStatus.ABORTED, message=message)

    # ── Gate plumbing ────────────────────────────────────────────────────────

    async def _run_gate(self, session: Session, gate: Gate, value: str) -> GateResult:
        await self._emit(session, gate.STEP, StepState.RUNNING)
        try:
            result = await asyncio.wait_for(gate.evaluate(value), timeout=self.gate_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "%s timed out after %.0fs", gate.NAME, self.gate_timeout,
                extra={"session_id": session.session_id, "step": gate.STEP.value},
            )
            result = gate.degraded(f"timed out after {self.gate_timeout:.0f}s")
        except Exception as exc:
            logger.exception(
                "%s crashed", gate.NAME,
                extra={"session_id": session.session_id, "step": gate.STEP.value},
            )
            result = gate.degraded(str(exc))

        session.gate_trail.append((gate.STEP, result.passed))
        await self._emit(session, gate.STEP, self._state_for(result), result.message)
        return result

    @staticmethod
    def _state_for(result: GateResult) -> StepState:
        if result.passed:
            return StepState.PASSED
        if result.requires_acknowledgement:
            return StepState.WARN
        return StepState.FAILED

    async def _abort(self, session: Session, gate: Gate, result: GateResult) -> ToolResponse:
        kind = result.failure or FailureKind.PROVIDER_UNAVAILABLE
        error = error_for_failure(kind, result.message)
        logger.warning(
            "Command aborted at %s: %s", gate.NAME, result.message,
            extra={"session_id": session.session_id, "step": gate.STEP.value},
        )
        session.last_error = error.code
        session.clear(ConfirmationPhase.ABORTED)
        return ToolResponse(
            status=CommandStatus.ABORTED,
            message=result.message,
            data=self._failure_data(gate, result) | {"error_code": error.code},
        )

    async def _checks_passed(self, session: Session) -> ToolResponse:
        pending = session.pending
        if pending is None:
            raise StateError("There is no pending command to check.")
        pending.security_checks_passed = True
        session.phase = ConfirmationPhase.AWAITING_EXECUTION_CONFIRMATION
        return ToolResponse(
            status=CommandStatus.CHECKS_PASSED,
            message=self._ready_message(pending),
            data={
                "resolved_address": pending.resolved_address,
                "address_type": pending.address_type.value if pending.address_type else None,
                "contract_name": pending.contract_name,
                "warning_acknowledged": pending.warning_acknowledged,
            },
        )

    def _acknowledgement_reminder(self, session: Session) -> ToolResponse:
        message = "Say 'acknowledge' to proceed anyway or 'cancel' to abort."
        if session.warning is not None:
            message = self.scan_gate.result_for(session.warning).message
        return ToolResponse(status=CommandStatus.NEEDS_ACKNOWLEDGEMENT, message=message)

    @staticmethod
    def _failure_data(gate: Gate, result: GateResult) -> dict:
        data: dict = {"step": gate.STEP.value}
        if result.failure is not None:
            data["failure"] = result.failure.value
        if "vulnerability" in result.data:
            data["vulnerability"] = result.data["vulnerability"]
        scan = result.data.get("scan")
        if scan is not None:
            data["scan"] = scan.model_dump(mode="json")
        return data

    # ── Messages ─────────────────────────────────────────────────────────────

    @staticmethod
    def _verification_prompt(pending: PendingCommand) -> str:
        return f"I heard: {pending.describe()}. Is that correct?"

    @staticmethod
    def _ready_message(pending: PendingCommand) -> str:
        return (
            f"All security checks passed. I am ready to {pending.action.value} "
            f"{pending.amount} to {pending.target}. Say 'execute' to proceed."
        )

    # ── Events ───────────────────────────────────────────────────────────────

    async def _emit(
        self, session: Session, step: PipelineStep, state: StepState, detail: str | None = None
    ) -> None:
        await self._emit_event(session, ProgressEvent(step=step, state=state, detail=detail))

    async def _emit_event(self, session: Session, event: ProgressEvent) -> None:
        await emit_safely(self.broadcaster, session.session_id, event)
