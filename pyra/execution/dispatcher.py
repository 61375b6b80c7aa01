"""Transaction dispatcher: real or simulated execution behind one receipt shape."""

from __future__ import annotations

import asyncio
import logging
import secrets

from pyra.core.errors import ParseAmbiguity, ProviderUnavailable, TransactionFailed
from pyra.core.types import TransactionReceipt
from pyra.execution.amounts import parse_amount
from pyra.execution.signer import Signer

logger = logging.getLogger(__name__)

TX_HASH_LENGTH = 66  # "0x" + 32 bytes hex


def simulated_hash() -> str:
    return "0x" + secrets.token_hex(32)


class TransactionDispatcher:
    """Executes a transfer.

    The mode is fixed at construction from configuration: simulated when
    no signer is configured or when ``simulate`` is set, real otherwise.
    Gate outcomes never influence the mode.
    """

    def __init__(
        self,
        signer: Signer | None = None,
        simulate: bool = True,
        simulated_delay: float = 1.5,
        native_currency: str = "ETH",
        native_decimals: int = 18,
    ) -> None:
        self._signer = signer
        self.simulated = simulate or signer is None
        self._simulated_delay = simulated_delay
        self._native_currency = native_currency.upper()
        self._native_decimals = native_decimals

    @property
    def signer(self) -> Signer | None:
        return self._signer

    async def execute(self, to: str, amount: str) -> TransactionReceipt:
        if self.simulated:
            await asyncio.sleep(self._simulated_delay)
            receipt = TransactionReceipt(hash=simulated_hash(), simulated=True, to=to, amount=amount)
            logger.info("Simulated transaction %s: %s to %s", receipt.hash, amount, to)
            return receipt

        if self._signer is None:
            raise TransactionFailed("No signer is configured for real execution.")
        try:
            parsed = parse_amount(amount)
        except ParseAmbiguity as exc:
            raise TransactionFailed(exc.message) from exc
        if parsed.symbol != self._native_currency:
            raise TransactionFailed(
                f"Only {self._native_currency} transfers can be executed; {parsed.symbol} is not supported."
            )

        try:
            result = await self._signer.send(to, parsed.to_base_units(self._native_decimals))
        except (ProviderUnavailable, ParseAmbiguity) as exc:
            raise TransactionFailed(f"The transaction could not be submitted: {exc.message}") from exc
        if not result.confirmed:
            raise TransactionFailed(
                f"Transaction {result.hash} was submitted but not confirmed in time."
            )
        return TransactionReceipt(hash=result.hash, simulated=False, to=to, amount=amount)
