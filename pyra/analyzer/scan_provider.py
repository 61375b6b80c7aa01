"""Security scan providers: remote scanner API and local static detectors."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from pyra.analyzer.detectors import run_detectors
from pyra.core.types import ScanDecision, SecurityScanResult

logger = logging.getLogger(__name__)

OFFLINE_RESULT = SecurityScanResult(
    decision=ScanDecision.OFFLINE,
    reason="Security scanning service is currently unavailable",
    summary="Unable to connect to the security scanner",
    risk_score=0.0,
)


class SecurityScanProvider(ABC):
    """Submits contract source for analysis and returns a normalised decision."""

    @abstractmethod
    async def analyze(self, source_code: str) -> SecurityScanResult:
        """Analyze ``source_code``.

        Implementations never raise for transport problems; an unreachable
        backend is reported as ``ScanDecision.OFFLINE``.
        """
        ...


def normalize_decision(raw: Any) -> ScanDecision:
    """Map a provider's decision string onto ``ScanDecision``.

    OFFLINE is reserved for transport failures, and anything the scanner
    says that we do not recognise must be looked at by a human.
    """
    try:
        decision = ScanDecision(str(raw).strip().upper())
    except ValueError:
        return ScanDecision.ESCALATE
    if decision == ScanDecision.OFFLINE:
        return ScanDecision.ESCALATE
    return decision


def format_summary(summary: Any) -> str:
    """Render a scanner summary (string or severity counts) as one sentence."""
    if not summary:
        return ""
    if isinstance(summary, str):
        return summary
    if isinstance(summary, dict):
        parts = [
            f"{key}={summary[key]}"
            for key in ("total", "critical", "high", "medium", "low")
            if summary.get(key) is not None
        ]
        if parts:
            return f"Findings: {', '.join(parts)}"
    return ""


class KairoScanProvider(SecurityScanProvider):
    """Client for a Kairo-style ``POST /v1/analyze`` scanner API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        severity_threshold: str = "high",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._severity_threshold = severity_threshold
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _build_request(self, source_code: str) -> dict[str, Any]:
        return {
            "source": {
                "type": "inline",
                "files": [{"path": "Contract.sol", "content": source_code}],
            },
            "config": {
                "severity_threshold": self._severity_threshold,
                "include_suggestions": True,
            },
        }

    async def analyze(self, source_code: str) -> SecurityScanResult:
        start = time.perf_counter()
        try:
            response = await self._client.post(
                self._api_url,
                json=self._build_request(source_code),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("scanner returned a non-object body")
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "Scanner unreachable after %.0fms: %s",
                (time.perf_counter() - start) * 1000, exc,
            )
            return OFFLINE_RESULT

        decision = normalize_decision(data.get("decision"))
        reason = data.get("decision_reason") or ""
        summary = format_summary(data.get("summary")) or reason or "Security analysis completed"
        issues = [
            f.get("title", "") for f in data.get("findings", []) or []
            if isinstance(f, dict) and f.get("title")
        ]
        try:
            risk_score = float(data.get("risk_score") or 0.0)
        except (TypeError, ValueError):
            risk_score = 0.0

        logger.info(
            "Scanner responded in %.0fms with decision %s",
            (time.perf_counter() - start) * 1000, decision.value,
            extra={"decision": decision.value},
        )
        return SecurityScanResult(
            decision=decision,
            reason=reason,
            summary=summary,
            risk_score=risk_score,
            issues=issues,
        )

    async def close(self) -> None:
        await self._client.aclose()


class StaticScanProvider(SecurityScanProvider):
    """Offline provider built on the local regex detectors."""

    async def analyze(self, source_code: str) -> SecurityScanResult:
        detections = run_detectors(source_code)
        if not detections:
            return SecurityScanResult(
                decision=ScanDecision.ALLOW,
                reason="No critical vulnerabilities detected",
                summary="Contract passed all security checks",
                risk_score=1.0,
            )

        top = detections[0]
        issues = list(dict.fromkeys(f"{d.summary} (line {d.line})" for d in detections))
        logger.info("Static scan: %s via %s", top.decision.value, top.detector_id)
        return SecurityScanResult(
            decision=top.decision,
            reason=top.reason,
            summary=top.summary,
            risk_score=top.risk_score,
            issues=issues,
        )
