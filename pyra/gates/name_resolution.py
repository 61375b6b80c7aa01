"""Gate 1: naming-service resolution."""

from __future__ import annotations

import logging
import time

from pyra.core.errors import ProviderUnavailable
from pyra.core.types import FailureKind, GateResult, PipelineStep
from pyra.gates.base import Gate
from pyra.providers.naming import NameResolver

logger = logging.getLogger(__name__)


def shorten(address: str) -> str:
    """``0x1234...abcd`` form used in spoken messages."""
    return f"{address[:6]}...{address[-4:]}" if len(address) > 12 else address


class NameResolutionGate(Gate):
    """Resolve names with a recognised suffix; pass everything else through."""

    STEP = PipelineStep.NAME_RESOLUTION
    NAME = "Name resolution"

    def __init__(self, resolver: NameResolver, suffixes: tuple[str, ...] = (".eth",)) -> None:
        self._resolver = resolver
        self._suffixes = tuple(s.lower() for s in suffixes)

    def is_name(self, target: str) -> bool:
        return target.strip().lower().endswith(self._suffixes)

    async def evaluate(self, value: str) -> GateResult:
        target = value.strip()
        if not self.is_name(target):
            return GateResult.ok("Target is not a registered name.", address=target)

        logger.info("Resolving %s", target, extra={"step": self.STEP.value})
        start = time.perf_counter()
        try:
            address = await self._resolver.resolve(target)
        except ProviderUnavailable as exc:
            logger.error("Name resolution error for %s: %s", target, exc)
            return GateResult.fail(
                FailureKind.PROVIDER_UNAVAILABLE,
                f"Name resolution failed: could not resolve {target} because the naming service is unavailable.",
                reason=str(exc),
            )

        if not address:
            return GateResult.fail(
                FailureKind.RESOLUTION_FAILURE,
                f"Name resolution failed: could not resolve {target} to an address.",
            )

        logger.info(
            "Resolved %s to %s in %.0fms", target, address, (time.perf_counter() - start) * 1000
        )
        return GateResult.ok(f"Resolved {target} to {shorten(address)}", address=address)
