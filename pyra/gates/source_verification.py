"""Gate 4: published source availability (contracts only)."""

from __future__ import annotations

import logging
import time

from pyra.core.errors import ProviderUnavailable
from pyra.core.types import FailureKind, GateResult, PipelineStep
from pyra.gates.base import Gate
from pyra.ingestion.source_registry import SourceRegistry

logger = logging.getLogger(__name__)

UNVERIFIED_MESSAGE = (
    "I cannot execute this command. Contract source is unavailable or unverified."
)


class SourceVerificationGate(Gate):
    """Refuse any contract whose source cannot be audited."""

    STEP = PipelineStep.SOURCE
    NAME = "Source verification"

    def __init__(self, registry: SourceRegistry) -> None:
        self._registry = registry

    async def evaluate(self, value: str) -> GateResult:
        start = time.perf_counter()
        try:
            source = await self._registry.fetch_source(value)
        except ProviderUnavailable as exc:
            logger.error("Source registry unavailable for %s: %s", value, exc)
            return GateResult.fail(
                FailureKind.PROVIDER_UNAVAILABLE, UNVERIFIED_MESSAGE, reason=str(exc)
            )
        logger.info(
            "Source fetch completed in %.0fms", (time.perf_counter() - start) * 1000,
            extra={"step": self.STEP.value, "address": value},
        )

        if not source.verified or not source.source_code.strip():
            return GateResult.fail(FailureKind.UNVERIFIED_SOURCE, UNVERIFIED_MESSAGE)

        return GateResult.ok(
            f"Source verified: {source.name}",
            source_code=source.source_code,
            contract_name=source.name,
        )

    def degraded(self, reason: str) -> GateResult:
        return GateResult.fail(FailureKind.PROVIDER_UNAVAILABLE, UNVERIFIED_MESSAGE, reason=reason)
