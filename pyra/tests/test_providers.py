"""Tests for the external collaborators: JSON-RPC, naming, chain reader, source registry."""

from __future__ import annotations

import json

import httpx
import pytest
from eth_utils import to_checksum_address

from pyra.core.chains import ENS_REGISTRY
from pyra.core.errors import ProviderUnavailable
from pyra.ingestion.source_registry import (
    DELEGATE_PROXY,
    UNVERIFIED_TRAP,
    VULNERABLE_BANK,
    EtherscanSourceRegistry,
    SimulatedSourceRegistry,
    _flatten_sources,
)
from pyra.providers.chain_reader import RpcChainReader, SimulatedChainReader
from pyra.providers.naming import (
    ADDR_SELECTOR,
    RESOLVER_SELECTOR,
    RpcNameResolver,
    StaticNameResolver,
    namehash,
)
from pyra.providers.rpc import JsonRpcClient

ADDRESS = "0x" + "c" * 40
PUBLIC_RESOLVER = "0x" + "f1" * 20


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _word(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte ABI word."""
    return "0x" + address.removeprefix("0x").rjust(64, "0")


def _rpc_handler(results: dict):
    """JSON-RPC responder keyed by method name."""

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        result = results[payload["method"]]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **result})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    return handler


# ── JSON-RPC ─────────────────────────────────────────────────────────────────


class TestJsonRpcClient:
    @pytest.mark.asyncio
    async def test_hex_helpers(self):
        rpc = JsonRpcClient(
            "https://rpc.test",
            client=_client(_rpc_handler({
                "eth_chainId": "0xaa36a7",
                "eth_blockNumber": "0x10",
                "eth_getBalance": "0xde0b6b3a7640000",
            })),
        )

        assert await rpc.chain_id() == 11155111
        assert await rpc.block_number() == 16
        assert await rpc.get_balance(ADDRESS) == 10**18

    @pytest.mark.asyncio
    async def test_rpc_error_object(self):
        rpc = JsonRpcClient(
            "https://rpc.test",
            client=_client(_rpc_handler({"eth_getCode": {"error": {"code": -32000, "message": "header not found"}}})),
        )

        with pytest.raises(ProviderUnavailable, match="header not found"):
            await rpc.get_code(ADDRESS)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        rpc = JsonRpcClient(
            "https://rpc.test",
            client=_client(_rpc_handler({"eth_chainId": httpx.ConnectError("refused")})),
        )

        with pytest.raises(ProviderUnavailable) as exc_info:
            await rpc.chain_id()
        assert exc_info.value.provider == "rpc"


class TestChainReaders:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("code, expected", [("0x", False), ("0x0", False), ("0x6080604052", True)])
    async def test_rpc_reader(self, code, expected):
        rpc = JsonRpcClient("https://rpc.test", client=_client(_rpc_handler({"eth_getCode": code})))
        assert await RpcChainReader(rpc).has_code(ADDRESS) is expected

    @pytest.mark.asyncio
    async def test_simulated_reader_is_case_insensitive(self):
        reader = SimulatedChainReader({ADDRESS.upper().replace("0X", "0x")})
        assert await reader.has_code(ADDRESS)
        assert not await reader.has_code("0x" + "d" * 40)


# ── Naming ───────────────────────────────────────────────────────────────────


class TestNameResolvers:
    def test_namehash(self):
        assert namehash("") == b"\x00" * 32
        assert namehash("eth").hex() == "93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae"
        assert namehash("foo.eth").hex() == "de9b09fd7c5f901e23a3f19fecc54828e9c848539801e86591bd9801b019f84f"

    @pytest.mark.asyncio
    async def test_rpc_resolver_walks_registry_then_resolver(self):
        node = namehash("foo.eth").hex()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            assert payload["method"] == "eth_call"
            call, block = payload["params"]
            assert block == "latest"
            calls.append(call["to"])
            if call["to"] == ENS_REGISTRY:
                assert call["data"] == RESOLVER_SELECTOR + node
                result = _word(PUBLIC_RESOLVER)
            else:
                assert call["to"] == to_checksum_address(PUBLIC_RESOLVER)
                assert call["data"] == ADDR_SELECTOR + node
                result = _word(ADDRESS)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

        resolver = RpcNameResolver(JsonRpcClient("https://rpc.test", client=_client(handler)), ENS_REGISTRY)

        assert await resolver.resolve("Foo.eth") == to_checksum_address(ADDRESS)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_rpc_resolver_without_resolver(self):
        rpc = JsonRpcClient("https://rpc.test", client=_client(_rpc_handler({"eth_call": _word("0" * 40)})))
        assert await RpcNameResolver(rpc, ENS_REGISTRY).resolve("ghost.eth") is None

    @pytest.mark.asyncio
    async def test_rpc_resolver_zero_record(self):
        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            to = payload["params"][0]["to"]
            result = _word(PUBLIC_RESOLVER) if to == ENS_REGISTRY else _word("0" * 40)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

        rpc = JsonRpcClient("https://rpc.test", client=_client(handler))
        assert await RpcNameResolver(rpc, ENS_REGISTRY).resolve("empty.eth") is None

    @pytest.mark.asyncio
    async def test_rpc_resolver_outage(self):
        rpc = JsonRpcClient("https://rpc.test", client=_client(lambda r: httpx.Response(500)))

        with pytest.raises(ProviderUnavailable) as exc_info:
            await RpcNameResolver(rpc, ENS_REGISTRY).resolve("vault.eth")
        assert exc_info.value.provider == "naming"

    @pytest.mark.asyncio
    async def test_static_resolver_defaults(self):
        resolver = StaticNameResolver()
        assert await resolver.resolve("bad-vault.eth") == VULNERABLE_BANK
        assert await resolver.resolve("proxy-vault.eth") == DELEGATE_PROXY
        assert await resolver.resolve("nobody.eth") is None


# ── Source registry ──────────────────────────────────────────────────────────


def _etherscan(body, status_code: int = 200) -> EtherscanSourceRegistry:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["module"] == "contract"
        assert request.url.params["action"] == "getsourcecode"
        assert request.url.params["apikey"] == "k"
        return httpx.Response(status_code, json=body)

    return EtherscanSourceRegistry("https://explorer.test/api", api_key="k", client=_client(handler))


class TestEtherscanSourceRegistry:
    @pytest.mark.asyncio
    async def test_verified_source(self):
        registry = _etherscan({
            "status": "1",
            "result": [{"SourceCode": "contract Vault {}", "ContractName": "Vault"}],
        })

        source = await registry.fetch_source(ADDRESS)

        assert source.verified
        assert source.name == "Vault"
        assert source.source_code == "contract Vault {}"

    @pytest.mark.asyncio
    async def test_empty_source_is_unverified(self):
        registry = _etherscan({"status": "1", "result": [{"SourceCode": "", "ContractName": ""}]})
        source = await registry.fetch_source(ADDRESS)
        assert not source.verified

    @pytest.mark.asyncio
    async def test_not_ok_status_is_unverified(self):
        registry = _etherscan({"status": "0", "message": "NOTOK", "result": "Invalid address"})
        source = await registry.fetch_source(ADDRESS)
        assert not source.verified

    @pytest.mark.asyncio
    async def test_http_failure_raises(self):
        with pytest.raises(ProviderUnavailable):
            await _etherscan({}, status_code=502).fetch_source(ADDRESS)

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        with pytest.raises(ProviderUnavailable):
            await _etherscan(["unexpected"]).fetch_source(ADDRESS)

    def test_flatten_standard_json(self):
        standard = json.dumps({
            "language": "Solidity",
            "sources": {
                "A.sol": {"content": "contract A {}"},
                "B.sol": {"content": "contract B {}"},
            },
        })

        assert _flatten_sources("{" + standard + "}") == "contract A {}\n\ncontract B {}"
        assert _flatten_sources(standard) == "contract A {}\n\ncontract B {}"
        assert _flatten_sources("contract C {}") == "contract C {}"


class TestSimulatedSourceRegistry:
    @pytest.mark.asyncio
    async def test_fixtures(self):
        registry = SimulatedSourceRegistry()

        assert not (await registry.fetch_source(UNVERIFIED_TRAP)).verified
        assert (await registry.fetch_source(VULNERABLE_BANK)).name == "VulnerableBank"
        assert (await registry.fetch_source(DELEGATE_PROXY)).name == "ProxyContract"

        other = await registry.fetch_source(ADDRESS)
        assert other.verified
        assert other.name == "SimulatedVault"

    @pytest.mark.asyncio
    async def test_empty_table_has_no_fixtures(self):
        registry = SimulatedSourceRegistry({})

        source = await registry.fetch_source(UNVERIFIED_TRAP)
        assert source.verified
        assert source.name == "SimulatedVault"
