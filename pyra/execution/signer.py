"""Signer collaborator: balance lookups and value transfers."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from pyra.core.errors import TransactionFailed
from pyra.providers.rpc import JsonRpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    hash: str
    confirmed: bool


class BalanceReader(ABC):
    """Read-only view of native-currency balances."""

    @abstractmethod
    async def balance(self, address: str) -> Decimal:
        """Balance of ``address`` in whole native-currency units."""
        ...


class RpcBalanceReader(BalanceReader):
    """``eth_getBalance`` scaled by the chain's native decimals."""

    def __init__(self, rpc: JsonRpcClient, decimals: int = 18) -> None:
        self._rpc = rpc
        self._unit = Decimal(10) ** decimals

    async def balance(self, address: str) -> Decimal:
        wei = await self._rpc.get_balance(address)
        return Decimal(wei) / self._unit


class Signer(BalanceReader):
    """Wallet that can report balances and send native-currency transfers."""

    address: str

    @abstractmethod
    async def send(self, to: str, amount_wei: int) -> SendResult:
        ...


class RpcSigner(RpcBalanceReader, Signer):
    """Signs through a node-managed account via ``eth_sendTransaction``.

    Key custody stays with the node (or its external signer); this class
    only submits the transfer and waits for the receipt.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        address: str,
        confirmation_timeout: float = 120.0,
        poll_interval: float = 2.0,
        decimals: int = 18,
    ) -> None:
        super().__init__(rpc, decimals)
        self.address = address
        self._confirmation_timeout = confirmation_timeout
        self._poll_interval = poll_interval

    async def send(self, to: str, amount_wei: int) -> SendResult:
        tx_hash = await self._rpc.send_transaction({
            "from": self.address,
            "to": to,
            "value": hex(amount_wei),
        })
        if not tx_hash:
            raise TransactionFailed("The node did not return a transaction hash.")
        logger.info("Submitted transaction %s to %s", tx_hash, to)
        return SendResult(hash=tx_hash, confirmed=await self._wait_for_receipt(tx_hash))

    async def _wait_for_receipt(self, tx_hash: str) -> bool:
        deadline = time.monotonic() + self._confirmation_timeout
        while time.monotonic() < deadline:
            receipt = await self._rpc.get_transaction_receipt(tx_hash)
            if receipt:
                if receipt.get("status") == "0x0":
                    raise TransactionFailed(f"Transaction {tx_hash} reverted on-chain.")
                return True
            await asyncio.sleep(self._poll_interval)
        logger.warning("Transaction %s not confirmed within %.0fs", tx_hash, self._confirmation_timeout)
        return False
