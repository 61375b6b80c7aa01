"""Gate 2: on-chain address format validation."""

from __future__ import annotations

import re

from eth_utils import is_checksum_address

from pyra.core.types import FailureKind, GateResult, PipelineStep
from pyra.gates.base import Gate

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: str) -> bool:
    """Hex shape check plus EIP-55 checksum for mixed-case input.

    Single-case addresses carry no checksum and are accepted as-is.
    """
    if not ADDRESS_RE.match(value):
        return False
    digits = value[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return is_checksum_address(value)


class AddressValidationGate(Gate):
    STEP = PipelineStep.VALIDATION
    NAME = "Address validation"

    async def evaluate(self, value: str) -> GateResult:
        if not is_address(value):
            return GateResult.fail(
                FailureKind.INVALID_ADDRESS_FORMAT,
                f"Invalid Ethereum address format: {value}",
            )
        return GateResult.ok("Valid Ethereum address format.", address=value)
