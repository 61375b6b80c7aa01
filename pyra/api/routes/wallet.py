"""Agent wallet routes: address info and balance lookups."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from pyra.api.deps import get_runtime
from pyra.api.errors import ErrorCode, PyraAPIError
from pyra.gates.address_validation import is_address
from pyra.pipeline.factory import Runtime

logger = logging.getLogger(__name__)

router = APIRouter()


def _agent_address(runtime: Runtime) -> str:
    if runtime.signer is None:
        raise PyraAPIError(
            409,
            ErrorCode.WALLET_UNAVAILABLE,
            "Agent wallet not configured. Set PYRA_AGENT_ADDRESS.",
        )
    return runtime.signer.address


@router.get("")
async def wallet_info(runtime: Runtime = Depends(get_runtime)) -> dict:
    """Explain the agent wallet and how it differs from the user's own wallet."""
    address = _agent_address(runtime)
    message = (
        f"Agent wallet address: {address}. "
        "This is the server-side wallet the agent can sign with. "
        "Your browser wallet (e.g. MetaMask) is separate and controlled by you. "
        "To fund the agent wallet, send funds to the address above from your browser wallet."
    )
    return {
        "address": address,
        "chain": runtime.chain.name,
        "simulated_transactions": runtime.pipeline.dispatcher.simulated,
        "message": message,
    }


@router.get("/balance")
async def wallet_balance(
    target: str | None = Query(None, description="Address or name; defaults to the agent wallet"),
    runtime: Runtime = Depends(get_runtime),
) -> dict:
    """Native balance of an address or name (names go through the resolution gate)."""
    target = (target or "").strip()
    if not target:
        address = _agent_address(runtime)
    else:
        result = await runtime.name_gate.evaluate(target)
        if not result.passed:
            raise PyraAPIError(404, ErrorCode.RESOLUTION_FAILURE, result.message)
        address = result.data["address"]

    if not is_address(address):
        raise PyraAPIError(400, ErrorCode.BAD_REQUEST, f"Invalid Ethereum address format: {address}")

    balance = format((await runtime.balances.balance(address)).normalize(), "f")
    symbol = runtime.chain.native_currency
    return {
        "address": address,
        "balance": balance,
        "symbol": symbol,
        "message": f"Balance for {address}: {balance} {symbol}.",
    }
