"""Gate 5: static vulnerability scan (contracts only).

Decision mapping:
  - ALLOW    → pass
  - BLOCK    → failure, unrecoverable; the vulnerability class is spoken back
  - WARN / ESCALATE → failure that requires an explicit acknowledgement
  - OFFLINE  → treated like WARN; an unavailable scanner is never an ALLOW
"""

from __future__ import annotations

import logging

from pyra.analyzer.scan_provider import OFFLINE_RESULT, SecurityScanProvider
from pyra.core.types import (
    FailureKind,
    GateResult,
    PipelineStep,
    ScanDecision,
    SecurityScanResult,
)
from pyra.gates.base import Gate

logger = logging.getLogger(__name__)


def _sentence(text: str) -> str:
    text = text.strip()
    if not text:
        return ""
    return text if text.endswith((".", "!", "?")) else f"{text}."


def block_message(scan: SecurityScanResult) -> str:
    parts = [
        "I cannot execute this command.",
        _sentence(f"Security scan BLOCKED: {scan.summary}"),
        _sentence(scan.reason),
    ]
    return " ".join(p for p in parts if p)


def warning_message(scan: SecurityScanResult) -> str:
    if scan.is_offline:
        return (
            "Security warning: the security scanner is offline, so this contract "
            "could not be analyzed. Say 'acknowledge' to proceed without a scan "
            "or 'cancel' to abort."
        )
    parts = [
        _sentence(f"Security warning: {scan.summary}"),
        f"Risk score: {scan.risk_score:g}/10.",
        _sentence(scan.reason),
        "Say 'acknowledge' to proceed anyway or 'cancel' to abort.",
    ]
    return " ".join(p for p in parts if p)


class SecurityScanGate(Gate):
    STEP = PipelineStep.SECURITY_SCAN
    NAME = "Security scan"

    def __init__(self, provider: SecurityScanProvider) -> None:
        self._provider = provider

    async def evaluate(self, value: str) -> GateResult:
        scan = await self._provider.analyze(value)
        logger.info(
            "Scan decision %s (risk %.1f)", scan.decision.value, scan.risk_score,
            extra={"step": self.STEP.value, "decision": scan.decision.value},
        )
        return self.result_for(scan)

    def result_for(self, scan: SecurityScanResult) -> GateResult:
        if scan.decision == ScanDecision.ALLOW:
            return GateResult.ok(
                _sentence(f"Security scan passed: {scan.reason or scan.summary}"), scan=scan
            )

        if scan.decision == ScanDecision.BLOCK:
            return GateResult.fail(
                FailureKind.SECURITY_BLOCK,
                block_message(scan),
                scan=scan,
                vulnerability=scan.summary,
            )

        kind = (
            FailureKind.PROVIDER_UNAVAILABLE if scan.is_offline else FailureKind.SECURITY_WARNING
        )
        return GateResult(
            passed=False,
            message=warning_message(scan),
            data={"scan": scan, "vulnerability": scan.summary},
            failure=kind,
            requires_acknowledgement=True,
        )

    def degraded(self, reason: str) -> GateResult:
        logger.warning("Security scan degraded to OFFLINE: %s", reason)
        return self.result_for(OFFLINE_RESULT)
