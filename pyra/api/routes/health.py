"""Health check endpoints: liveness and collaborator readiness."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from pyra.api.deps import get_runtime
from pyra.api.services.readiness import readiness_report
from pyra.pipeline.factory import Runtime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Quick liveness probe."""
    return {"status": "healthy", "service": "pyra"}


@router.get("/health/ready")
async def readiness_check(runtime: Runtime = Depends(get_runtime)) -> dict:
    """Deep readiness check: RPC node, block explorer and security scanner."""
    return await readiness_report(runtime)
