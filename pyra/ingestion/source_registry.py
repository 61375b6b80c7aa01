"""Fetch verified smart contract source code from block explorers."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from pyra.core.errors import ProviderUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractSource:
    """Published source for an address, as reported by the registry."""

    verified: bool
    source_code: str = ""
    name: str = ""


class SourceRegistry(ABC):
    """Looks up the published source of a deployed contract."""

    @abstractmethod
    async def fetch_source(self, address: str) -> ContractSource:
        ...


def _flatten_sources(source_code: str) -> str:
    """Join multi-file standard JSON input into a single flat source.

    Etherscan double-wraps standard JSON input in braces (``{{...}}``).
    Plain Solidity is returned unchanged.
    """
    if source_code.startswith("{{"):
        raw = source_code[1:-1]
    elif source_code.startswith("{"):
        raw = source_code
    else:
        return source_code

    try:
        json_input = json.loads(raw)
    except json.JSONDecodeError:
        return source_code

    sources = json_input.get("sources", {}) if isinstance(json_input, dict) else {}
    files = [src.get("content", "") for src in sources.values() if isinstance(src, dict)]
    return "\n\n".join(files) if files else source_code


class EtherscanSourceRegistry(SourceRegistry):
    """Etherscan-compatible ``getsourcecode`` client."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_source(self, address: str) -> ContractSource:
        params = {
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
        }
        if self._api_key:
            params["apikey"] = self._api_key

        start = time.perf_counter()
        try:
            response = await self._client.get(self._api_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderUnavailable("explorer", f"source lookup failed: {exc}") from exc
        logger.info(
            "Source fetch for %s completed in %.0fms",
            address, (time.perf_counter() - start) * 1000,
        )

        if not isinstance(data, dict):
            raise ProviderUnavailable("explorer", "unexpected response body")
        results = data.get("result")
        if data.get("status") != "1" or not isinstance(results, list) or not results:
            return ContractSource(verified=False, name="Unknown")

        result = results[0]
        source_code = result.get("SourceCode", "") or ""
        # Unverified contracts come back with an empty SourceCode field
        if not source_code.strip():
            return ContractSource(verified=False, name=result.get("ContractName", "") or "Unknown")

        return ContractSource(
            verified=True,
            source_code=_flatten_sources(source_code),
            name=result.get("ContractName", ""),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


# ── Simulation fixtures ──────────────────────────────────────────────────────

UNVERIFIED_TRAP = "0x0000000000000000000000000000000000000000"
VULNERABLE_BANK = "0x1111111111111111111111111111111111111111"
DELEGATE_PROXY = "0x2222222222222222222222222222222222222222"

VULNERABLE_BANK_SOURCE = """\
pragma solidity ^0.8.20;

contract VulnerableBank {
    mapping(address => uint256) public balances;

    function deposit() external payable {
        balances[msg.sender] += msg.value;
    }

    function withdraw() external {
        uint256 bal = balances[msg.sender];
        (bool ok, ) = msg.sender.call{value: bal}("");
        require(ok, "Transfer failed");
        balances[msg.sender] = 0;
    }
}
"""

DELEGATE_PROXY_SOURCE = """\
pragma solidity ^0.8.20;

contract ProxyContract {
    address public owner;

    function execute(address target, bytes calldata data) external {
        (bool ok, ) = target.delegatecall(data);
        require(ok, "Delegatecall failed");
    }
}
"""

SIMULATED_SOURCE = """\
pragma solidity ^0.8.20;

contract SimulatedVault {
    mapping(address => uint256) public shares;

    function deposit() external payable {
        shares[msg.sender] += msg.value;
    }
}
"""


class SimulatedSourceRegistry(SourceRegistry):
    """Offline registry with fixed fixtures for each gate outcome."""

    def __init__(self, sources: dict[str, ContractSource] | None = None) -> None:
        table = self.default_sources() if sources is None else sources
        self._sources = {k.lower(): v for k, v in table.items()}

    @staticmethod
    def default_sources() -> dict[str, ContractSource]:
        return {
            UNVERIFIED_TRAP: ContractSource(verified=False, name="Unverified Trap"),
            VULNERABLE_BANK: ContractSource(
                verified=True, source_code=VULNERABLE_BANK_SOURCE, name="VulnerableBank"
            ),
            DELEGATE_PROXY: ContractSource(
                verified=True, source_code=DELEGATE_PROXY_SOURCE, name="ProxyContract"
            ),
        }

    async def fetch_source(self, address: str) -> ContractSource:
        source = self._sources.get(address.lower())
        if source is not None:
            logger.info("Simulated source fixture %s for %s", source.name, address)
            return source
        return ContractSource(verified=True, source_code=SIMULATED_SOURCE, name="SimulatedVault")
