"""Static Solidity detectors used by the offline scan provider.

Each detector maps one dangerous pattern to a scan decision:

  - Re-entrancy via value call (BLOCK, CWE-841)
  - Self-destruct (BLOCK, CWE-477)
  - Delegatecall to caller-supplied target (WARN, CWE-829)
  - Authorization via tx.origin (WARN, CWE-477)
"""

from __future__ import annotations

import re

from pyra.analyzer.base_detector import BaseDetector, Detection, DetectorContext
from pyra.core.types import ScanDecision


class ReentrancyValueCallDetector(BaseDetector):
    """Detect ETH transfers through low-level ``call`` without a re-entrancy guard."""

    DETECTOR_ID = "PYRA-REENT-001"
    TITLE = "Re-entrancy Attack"
    CWE_ID = "CWE-841"
    DECISION = ScanDecision.BLOCK
    RISK_SCORE = 9.5
    REASON = "Critical re-entrancy vulnerability detected"

    _pattern = re.compile(r"\.call\s*\{\s*value\s*:|\.call\.value\s*\(")

    def detect(self, context: DetectorContext) -> list[Detection]:
        if context.has_reentrancy_guard:
            return []
        return self._scan_lines(context, self._pattern)


class SelfDestructDetector(BaseDetector):
    DETECTOR_ID = "PYRA-SD-001"
    TITLE = "Dangerous Self-Destruct"
    CWE_ID = "CWE-477"
    DECISION = ScanDecision.BLOCK
    RISK_SCORE = 8.0
    REASON = "Dangerous self-destruct pattern detected"

    _pattern = re.compile(r"\b(selfdestruct|suicide)\s*\(")

    def detect(self, context: DetectorContext) -> list[Detection]:
        return self._scan_lines(context, self._pattern)


class DelegatecallDetector(BaseDetector):
    DETECTOR_ID = "PYRA-DC-001"
    TITLE = "Unchecked Delegatecall"
    CWE_ID = "CWE-829"
    DECISION = ScanDecision.WARN
    RISK_SCORE = 7.0
    REASON = "Unchecked delegatecall pattern"

    _pattern = re.compile(r"\.delegatecall\s*\(")

    def detect(self, context: DetectorContext) -> list[Detection]:
        return self._scan_lines(context, self._pattern)


class TxOriginAuthDetector(BaseDetector):
    """Detect ``tx.origin`` used in an authorization check."""

    DETECTOR_ID = "PYRA-TXO-001"
    TITLE = "Authorization via tx.origin"
    CWE_ID = "CWE-477"
    DECISION = ScanDecision.WARN
    RISK_SCORE = 6.0
    REASON = "Authorization via tx.origin"

    _pattern = re.compile(r"(require|if)\s*\([^;]*\btx\.origin\b")

    def detect(self, context: DetectorContext) -> list[Detection]:
        return self._scan_lines(context, self._pattern)


DEFAULT_DETECTORS: tuple[type[BaseDetector], ...] = (
    ReentrancyValueCallDetector,
    SelfDestructDetector,
    DelegatecallDetector,
    TxOriginAuthDetector,
)


def run_detectors(
    source_code: str,
    detectors: tuple[type[BaseDetector], ...] = DEFAULT_DETECTORS,
    contract_name: str = "",
) -> list[Detection]:
    """Run every detector and return detections, most severe first."""
    context = DetectorContext(source_code=source_code, contract_name=contract_name)
    detections: list[Detection] = []
    for detector_cls in detectors:
        detections.extend(detector_cls().detect(context))
    return sorted(
        detections,
        key=lambda d: (d.decision == ScanDecision.BLOCK, d.risk_score),
        reverse=True,
    )
