"""Connectivity checks for the pipeline's external collaborators."""

from __future__ import annotations

import logging
import time
from typing import Any

from pyra.core.errors import ProviderUnavailable
from pyra.ingestion.source_registry import UNVERIFIED_TRAP
from pyra.pipeline.factory import Runtime

logger = logging.getLogger(__name__)

PING_CONTRACT = "contract Ping { function noop() public {} }"


def _elapsed(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


async def check_rpc(runtime: Runtime) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        chain_id = await runtime.rpc.chain_id()
        block = await runtime.rpc.block_number()
    except ProviderUnavailable as exc:
        logger.error("RPC check failed after %.0fms: %s", _elapsed(start), exc.message)
        return {"status": "down", "error": exc.message, "latency_ms": _elapsed(start)}

    check: dict[str, Any] = {
        "status": "up",
        "chain_id": chain_id,
        "block_number": block,
        "latency_ms": _elapsed(start),
    }
    if chain_id != runtime.chain.chain_id:
        check["status"] = "misconfigured"
        check["error"] = f"expected chain id {runtime.chain.chain_id}, node reports {chain_id}"
    logger.info("RPC reachable in %.0fms (chainId %s, block %s)", check["latency_ms"], chain_id, block)
    return check


async def check_explorer(runtime: Runtime) -> dict[str, Any]:
    if runtime.providers.get("source") == "simulated":
        return {"status": "simulated"}
    start = time.perf_counter()
    try:
        await runtime.registry.fetch_source(UNVERIFIED_TRAP)
    except ProviderUnavailable as exc:
        return {"status": "down", "error": exc.message, "latency_ms": _elapsed(start)}
    return {"status": "up", "latency_ms": _elapsed(start)}


async def check_scanner(runtime: Runtime) -> dict[str, Any]:
    if runtime.providers.get("scan") == "static":
        return {"status": "simulated"}
    start = time.perf_counter()
    result = await runtime.scanner.analyze(PING_CONTRACT)
    status = "down" if result.is_offline else "up"
    logger.info(
        "Scanner check completed in %.0fms with decision %s", _elapsed(start), result.decision.value
    )
    return {"status": status, "decision": result.decision.value, "latency_ms": _elapsed(start)}


async def readiness_report(runtime: Runtime) -> dict[str, Any]:
    """Probe RPC, explorer and scanner; only RPC is required for readiness."""
    start = time.perf_counter()
    checks = {
        "rpc": await check_rpc(runtime),
        "explorer": await check_explorer(runtime),
        "scanner": await check_scanner(runtime),
    }
    overall = checks["rpc"]["status"] == "up" and all(
        check["status"] in ("up", "simulated") for check in checks.values()
    )
    return {
        "status": "healthy" if overall else "degraded",
        "service": "pyra",
        "chain": runtime.chain.name,
        "providers": runtime.providers,
        "simulated_transactions": runtime.pipeline.dispatcher.simulated,
        "checks": checks,
        "latency_ms": _elapsed(start),
    }
