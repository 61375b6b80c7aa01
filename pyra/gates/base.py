"""Base gate class: every pre-execution safety check inherits from this."""

from __future__ import annotations

import abc

from pyra.core.types import FailureKind, GateResult, PipelineStep


class Gate(abc.ABC):
    """A single-purpose, fail-closed check.

    Gates are pure with respect to the pipeline: they read their input,
    consult their collaborator and return a ``GateResult``. They never
    touch the session and never broadcast.

    Gate metadata:
        - STEP: Pipeline step reported to observers
        - NAME: Human-readable name used in spoken messages
    """

    STEP: PipelineStep
    NAME: str = ""

    @abc.abstractmethod
    async def evaluate(self, value: str) -> GateResult:
        """Evaluate ``value`` (target, address or source code)."""
        ...

    def degraded(self, reason: str) -> GateResult:
        """Safe outcome when the gate timed out or crashed."""
        return GateResult.fail(
            FailureKind.PROVIDER_UNAVAILABLE,
            f"I cannot execute this command. {self.NAME} could not be completed right now.",
            reason=reason,
        )
