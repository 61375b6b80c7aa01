"""Naming-service resolution (ENS and friends)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from eth_utils import keccak, to_checksum_address

from pyra.core.errors import ProviderUnavailable
from pyra.providers.rpc import JsonRpcClient

logger = logging.getLogger(__name__)

# 4-byte selectors for ``resolver(bytes32)`` on the registry and ``addr(bytes32)``
# on a public resolver.
RESOLVER_SELECTOR = "0x0178b8bf"
ADDR_SELECTOR = "0x3b3b57de"


class NameResolver(ABC):
    """Translates a human-readable name into an on-chain address."""

    @abstractmethod
    async def resolve(self, name: str) -> str | None:
        """Return the address for ``name`` or ``None`` when it has no record."""
        ...


def namehash(name: str) -> bytes:
    """ENS namehash of ``name`` (EIP-137), label by label from the right."""
    node = b"\x00" * 32
    if name:
        for label in reversed(name.split(".")):
            node = keccak(node + keccak(text=label))
    return node


def _word_to_address(word: str) -> str | None:
    """Address held in the first 32-byte ABI word; ``None`` for an empty or zero word."""
    digits = word[2:] if word.startswith("0x") else word
    if len(digits) < 64:
        return None
    address = digits[24:64]
    if int(address, 16) == 0:
        return None
    return to_checksum_address("0x" + address)


class RpcNameResolver(NameResolver):
    """Resolve ENS names with ``eth_call`` against the registry of the connected chain.

    The registry yields the name's resolver contract, and the resolver's
    ``addr`` record is the answer. A missing resolver or a zero record both
    mean the name has no address.
    """

    def __init__(self, rpc: JsonRpcClient, registry: str) -> None:
        self._rpc = rpc
        self._registry = registry

    async def resolve(self, name: str) -> str | None:
        node = namehash(name.lower()).hex()
        try:
            resolver = _word_to_address(
                await self._rpc.eth_call(self._registry, RESOLVER_SELECTOR + node)
            )
            if resolver is None:
                logger.debug("No resolver set for %s", name)
                return None
            return _word_to_address(await self._rpc.eth_call(resolver, ADDR_SELECTOR + node))
        except ProviderUnavailable as exc:
            raise ProviderUnavailable("naming", f"lookup for {name} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderUnavailable("naming", f"lookup for {name} returned garbage: {exc}") from exc


class StaticNameResolver(NameResolver):
    """In-memory name table for simulation and tests."""

    DEFAULT_RECORDS = {
        "vitalik.eth": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045",
        "bad-vault.eth": "0x1111111111111111111111111111111111111111",
        "proxy-vault.eth": "0x2222222222222222222222222222222222222222",
        "unverified-vault.eth": "0x0000000000000000000000000000000000000000",
    }

    def __init__(self, records: dict[str, str] | None = None) -> None:
        source = self.DEFAULT_RECORDS if records is None else records
        self._records = {k.lower(): v for k, v in source.items()}

    async def resolve(self, name: str) -> str | None:
        return self._records.get(name.lower())
