"""Tests for the five pre-execution gates in isolation (no broadcaster involved)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from pyra.analyzer.scan_provider import OFFLINE_RESULT
from pyra.core.errors import ProviderUnavailable
from pyra.core.types import AddressType, FailureKind, ScanDecision, SecurityScanResult
from pyra.gates import (
    AddressValidationGate,
    ContractDetectionGate,
    NameResolutionGate,
    SecurityScanGate,
    SourceVerificationGate,
)
from pyra.gates.name_resolution import shorten
from pyra.gates.source_verification import UNVERIFIED_MESSAGE
from pyra.ingestion.source_registry import ContractSource
from pyra.providers.naming import StaticNameResolver


# ── Name resolution ──────────────────────────────────────────────────────────


class TestNameResolutionGate:
    @pytest.mark.asyncio
    async def test_passes_raw_address_through(self):
        resolver = AsyncMock()
        gate = NameResolutionGate(resolver)

        result = await gate.evaluate("0xabc")

        assert result.passed
        assert result.data["address"] == "0xabc"
        resolver.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resolves_name(self):
        gate = NameResolutionGate(StaticNameResolver())
        result = await gate.evaluate("Vitalik.ETH")

        assert result.passed
        assert result.data["address"] == "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
        assert result.message == "Resolved Vitalik.ETH to 0xd8dA...6045"

    @pytest.mark.asyncio
    async def test_unresolvable_name(self):
        gate = NameResolutionGate(StaticNameResolver({}))
        result = await gate.evaluate("ghost.eth")

        assert not result.passed
        assert result.failure == FailureKind.RESOLUTION_FAILURE
        assert result.message == "Name resolution failed: could not resolve ghost.eth to an address."

    @pytest.mark.asyncio
    async def test_naming_service_outage_fails(self):
        resolver = AsyncMock()
        resolver.resolve.side_effect = ProviderUnavailable("naming", "timeout")
        gate = NameResolutionGate(resolver)

        result = await gate.evaluate("vault.eth")

        assert not result.passed
        assert result.failure == FailureKind.PROVIDER_UNAVAILABLE
        assert "could not resolve vault.eth" in result.message

    @pytest.mark.asyncio
    async def test_custom_suffixes(self):
        gate = NameResolutionGate(StaticNameResolver({"treasury.base": "0x" + "1" * 40}), (".base",))

        assert gate.is_name("treasury.base")
        assert not gate.is_name("treasury.eth")
        assert (await gate.evaluate("treasury.base")).data["address"] == "0x" + "1" * 40

    def test_shorten(self):
        assert shorten("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
        assert shorten("0x1234") == "0x1234"


# ── Address validation ───────────────────────────────────────────────────────


class TestAddressValidationGate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "address",
        [
            "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045",
            "0x0000000000000000000000000000000000000000",
            "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            "0xA0B86991C6218B36C1D19D4A2E9EB0CE3606EB48",
        ],
    )
    async def test_valid(self, address):
        result = await AddressValidationGate().evaluate(address)
        assert result.passed

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "address",
        [
            "0x1234",
            "d8dA6BF26964aF9D7eEd9e03E53415D37aA96045",
            "0xZZdA6BF26964aF9D7eEd9e03E53415D37aA96045",
            "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA960451",
            "0xa0B86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "vault.eth",
        ],
    )
    async def test_invalid_reports_value_verbatim(self, address):
        result = await AddressValidationGate().evaluate(address)

        assert not result.passed
        assert result.failure == FailureKind.INVALID_ADDRESS_FORMAT
        assert result.message == f"Invalid Ethereum address format: {address}"


# ── Contract detection ───────────────────────────────────────────────────────


class TestContractDetectionGate:
    @pytest.mark.asyncio
    async def test_eoa(self):
        reader = AsyncMock()
        reader.has_code.return_value = False

        result = await ContractDetectionGate(reader).evaluate("0x" + "a" * 40)

        assert result.passed
        assert result.data["address_type"] == AddressType.EOA
        assert "Skipping source verification and security scan" in result.message

    @pytest.mark.asyncio
    async def test_contract(self):
        reader = AsyncMock()
        reader.has_code.return_value = True

        result = await ContractDetectionGate(reader).evaluate("0x" + "a" * 40)

        assert result.passed
        assert result.data["address_type"] == AddressType.CONTRACT

    @pytest.mark.asyncio
    async def test_rpc_outage_fails_closed(self):
        reader = AsyncMock()
        reader.has_code.side_effect = ProviderUnavailable("rpc", "connection refused")

        result = await ContractDetectionGate(reader).evaluate("0x" + "a" * 40)

        assert not result.passed
        assert result.failure == FailureKind.PROVIDER_UNAVAILABLE


# ── Source verification ──────────────────────────────────────────────────────


class TestSourceVerificationGate:
    @pytest.mark.asyncio
    async def test_verified_source(self):
        registry = AsyncMock()
        registry.fetch_source.return_value = ContractSource(
            verified=True, source_code="contract Vault {}", name="Vault"
        )

        result = await SourceVerificationGate(registry).evaluate("0x" + "b" * 40)

        assert result.passed
        assert result.data == {"source_code": "contract Vault {}", "contract_name": "Vault"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source",
        [
            ContractSource(verified=False, name="Unknown"),
            ContractSource(verified=True, source_code="   ", name="Blank"),
        ],
    )
    async def test_unverified_or_empty_source_fails(self, source):
        registry = AsyncMock()
        registry.fetch_source.return_value = source

        result = await SourceVerificationGate(registry).evaluate("0x" + "b" * 40)

        assert not result.passed
        assert result.failure == FailureKind.UNVERIFIED_SOURCE
        assert result.message == UNVERIFIED_MESSAGE

    @pytest.mark.asyncio
    async def test_explorer_outage_is_never_verified(self):
        registry = AsyncMock()
        registry.fetch_source.side_effect = ProviderUnavailable("explorer", "502")

        result = await SourceVerificationGate(registry).evaluate("0x" + "b" * 40)

        assert not result.passed
        assert result.failure == FailureKind.PROVIDER_UNAVAILABLE
        assert result.message == UNVERIFIED_MESSAGE

    def test_degraded(self):
        result = SourceVerificationGate(AsyncMock()).degraded("timed out")
        assert not result.passed
        assert result.message == UNVERIFIED_MESSAGE


# ── Security scan ────────────────────────────────────────────────────────────


def _scan(decision: ScanDecision, **kwargs) -> SecurityScanResult:
    defaults = {"reason": "Because", "summary": "Something found", "risk_score": 5.0}
    defaults.update(kwargs)
    return SecurityScanResult(decision=decision, **defaults)


class TestSecurityScanGate:
    @pytest.mark.asyncio
    async def test_allow_passes(self):
        provider = AsyncMock()
        provider.analyze.return_value = _scan(ScanDecision.ALLOW, reason="No critical vulnerabilities detected")

        result = await SecurityScanGate(provider).evaluate("contract A {}")

        assert result.passed
        assert result.message == "Security scan passed: No critical vulnerabilities detected."
        provider.analyze.assert_awaited_once_with("contract A {}")

    def test_block_is_unrecoverable(self):
        gate = SecurityScanGate(AsyncMock())
        result = gate.result_for(
            _scan(ScanDecision.BLOCK, summary="CWE-841: Re-entrancy Attack", reason="Critical re-entrancy vulnerability detected")
        )

        assert not result.passed
        assert not result.requires_acknowledgement
        assert result.failure == FailureKind.SECURITY_BLOCK
        assert result.data["vulnerability"] == "CWE-841: Re-entrancy Attack"
        assert result.message == (
            "I cannot execute this command. Security scan BLOCKED: CWE-841: Re-entrancy Attack. "
            "Critical re-entrancy vulnerability detected."
        )

    @pytest.mark.parametrize("decision", [ScanDecision.WARN, ScanDecision.ESCALATE])
    def test_warn_and_escalate_require_acknowledgement(self, decision):
        result = SecurityScanGate(AsyncMock()).result_for(
            _scan(decision, summary="CWE-829: Unchecked Delegatecall", reason="Unchecked delegatecall pattern", risk_score=7.0)
        )

        assert not result.passed
        assert result.requires_acknowledgement
        assert result.failure == FailureKind.SECURITY_WARNING
        assert result.message == (
            "Security warning: CWE-829: Unchecked Delegatecall. Risk score: 7/10. "
            "Unchecked delegatecall pattern. Say 'acknowledge' to proceed anyway or 'cancel' to abort."
        )

    def test_offline_is_never_allow(self):
        result = SecurityScanGate(AsyncMock()).result_for(OFFLINE_RESULT)

        assert not result.passed
        assert result.requires_acknowledgement
        assert result.failure == FailureKind.PROVIDER_UNAVAILABLE
        assert "offline" in result.message

    def test_degraded_is_offline_warning(self):
        result = SecurityScanGate(AsyncMock()).degraded("timed out")

        assert result.requires_acknowledgement
        assert result.data["scan"].decision == ScanDecision.OFFLINE
