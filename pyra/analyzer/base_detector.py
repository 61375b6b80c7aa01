"""Base detector class: all static scan detectors inherit from this."""

from __future__ import annotations

import abc
import re
from dataclasses import dataclass, field

from pyra.core.types import ScanDecision


@dataclass
class DetectorContext:
    """Source under analysis plus cheap derived views."""

    source_code: str = ""
    contract_name: str = ""

    @property
    def lines(self) -> list[str]:
        return self.source_code.split("\n")

    @property
    def code_lines(self) -> list[str]:
        """Lines with ``//`` comments stripped."""
        return [re.sub(r"//.*$", "", line) for line in self.lines]

    @property
    def has_reentrancy_guard(self) -> bool:
        return "nonReentrant" in self.source_code or "ReentrancyGuard" in self.source_code


@dataclass(frozen=True)
class Detection:
    """A single pattern match produced by a detector."""

    detector_id: str
    title: str
    cwe_id: str
    decision: ScanDecision
    risk_score: float
    reason: str
    line: int
    snippet: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def summary(self) -> str:
        return f"{self.cwe_id}: {self.title}"


class BaseDetector(abc.ABC):
    """Abstract base class for static vulnerability detectors.

    Detector metadata:
        - DETECTOR_ID: Unique identifier (e.g., "PYRA-REENT-001")
        - TITLE: Vulnerability class spoken back to the user
        - CWE_ID: Common Weakness Enumeration ID
        - DECISION: Scan decision this detector forces when it fires
        - RISK_SCORE: Risk on a 0–10 scale
        - REASON: Short explanation of the decision
    """

    DETECTOR_ID: str = ""
    TITLE: str = ""
    CWE_ID: str = ""
    DECISION: ScanDecision = ScanDecision.WARN
    RISK_SCORE: float = 5.0
    REASON: str = ""

    @abc.abstractmethod
    def detect(self, context: DetectorContext) -> list[Detection]:
        """Run the detector against the given context.

        Returns:
            List of detections. Empty if no issues found.
        """
        ...

    def _make_detection(self, line: int, snippet: str = "") -> Detection:
        return Detection(
            detector_id=self.DETECTOR_ID,
            title=self.TITLE,
            cwe_id=self.CWE_ID,
            decision=self.DECISION,
            risk_score=self.RISK_SCORE,
            reason=self.REASON,
            line=line,
            snippet=snippet.strip(),
        )

    def _scan_lines(self, context: DetectorContext, pattern: re.Pattern[str]) -> list[Detection]:
        """Return one detection per comment-free line matching ``pattern``."""
        return [
            self._make_detection(i + 1, context.lines[i])
            for i, line in enumerate(context.code_lines)
            if pattern.search(line)
        ]
