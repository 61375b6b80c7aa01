"""Deployed-code lookups used by contract detection."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pyra.providers.rpc import JsonRpcClient

logger = logging.getLogger(__name__)


class ChainReader(ABC):
    """Answers whether an address has deployed contract code."""

    @abstractmethod
    async def has_code(self, address: str) -> bool:
        ...


class RpcChainReader(ChainReader):
    """Reads deployed code through ``eth_getCode``."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    async def has_code(self, address: str) -> bool:
        code = await self._rpc.get_code(address)
        return bool(code) and code not in ("0x", "0x0")


class SimulatedChainReader(ChainReader):
    """Offline reader backed by a fixed set of contract addresses."""

    DEFAULT_CONTRACTS = frozenset({
        "0x0000000000000000000000000000000000000000",
        "0x1111111111111111111111111111111111111111",
        "0x2222222222222222222222222222222222222222",
    })

    def __init__(self, contracts: set[str] | frozenset[str] | None = None) -> None:
        source = self.DEFAULT_CONTRACTS if contracts is None else contracts
        self._contracts = {a.lower() for a in source}

    async def has_code(self, address: str) -> bool:
        return address.lower() in self._contracts
