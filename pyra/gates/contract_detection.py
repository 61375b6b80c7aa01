"""Gate 3: contract vs. externally-owned account detection."""

from __future__ import annotations

import logging

from pyra.core.errors import ProviderUnavailable
from pyra.core.types import AddressType, FailureKind, GateResult, PipelineStep
from pyra.gates.base import Gate
from pyra.providers.chain_reader import ChainReader

logger = logging.getLogger(__name__)


class ContractDetectionGate(Gate):
    """Classify the target; EOAs have no code to audit downstream."""

    STEP = PipelineStep.CONTRACT_DETECTION
    NAME = "Contract detection"

    def __init__(self, reader: ChainReader) -> None:
        self._reader = reader

    async def evaluate(self, value: str) -> GateResult:
        try:
            is_contract = await self._reader.has_code(value)
        except ProviderUnavailable as exc:
            logger.error("Code lookup failed for %s: %s", value, exc)
            return GateResult.fail(
                FailureKind.PROVIDER_UNAVAILABLE,
                "I cannot execute this command. I could not determine whether the target is a contract.",
                reason=str(exc),
            )

        if not is_contract:
            return GateResult.ok(
                "Target is an EOA (no contract code). Skipping source verification and security scan.",
                address_type=AddressType.EOA,
            )
        return GateResult.ok(
            "Target is a contract. Continuing to source verification.",
            address_type=AddressType.CONTRACT,
        )
