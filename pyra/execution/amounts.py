"""Amount parsing for spoken denominations ("1 ETH", "0.5 wbtc")."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from pyra.core.errors import ParseAmbiguity

_AMOUNT_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?|\.[0-9]+)\s*([A-Za-z][A-Za-z0-9]*)\s*$")


@dataclass(frozen=True)
class Amount:
    value: Decimal
    symbol: str

    def to_base_units(self, decimals: int = 18) -> int:
        units = self.value.scaleb(decimals)
        if units != units.to_integral_value():
            raise ParseAmbiguity(
                f"{self} has more precision than {self.symbol} supports."
            )
        return int(units)

    def __str__(self) -> str:
        return f"{self.value.normalize():f} {self.symbol}"


def parse_amount(text: str) -> Amount:
    """Parse ``"<number> <SYMBOL>"``; zero, negative or unitless amounts are rejected."""
    match = _AMOUNT_RE.match(text or "")
    if not match:
        raise ParseAmbiguity(
            f"I could not understand the amount '{text}'. Please say a number and a currency, like 1 ETH."
        )
    try:
        value = Decimal(match.group(1))
    except InvalidOperation as exc:
        raise ParseAmbiguity(f"I could not understand the amount '{text}'.") from exc
    if value <= 0:
        raise ParseAmbiguity("The amount must be greater than zero.")
    return Amount(value=value, symbol=match.group(2).upper())
