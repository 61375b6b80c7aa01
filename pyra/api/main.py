"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from pyra.api.errors import register_error_handlers
from pyra.api.middleware.request import RequestIDMiddleware
from pyra.api.routes import health, sessions, wallet
from pyra.core.config import Settings, get_settings
from pyra.core.logging import setup_logging
from pyra.pipeline.factory import build_runtime

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(
            env=settings.app_env, log_level="DEBUG" if settings.debug else settings.log_level
        )
        runtime = build_runtime(settings)
        app.state.runtime = runtime
        logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)
        try:
            yield
        finally:
            await runtime.close()
            app.state.runtime = None
            logger.info("Shutting down PYRA")

    app = FastAPI(
        title="PYRA API",
        description=(
            "Guarded command pipeline for conversational crypto transfers.\n\n"
            "Every transfer is restated, explicitly confirmed and passed through "
            "name resolution, address validation, contract detection, source "
            "verification and a security scan before it is dispatched."
        ),
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None if settings.app_env == "production" else "/api/docs",
        redoc_url=None if settings.app_env == "production" else "/api/redoc",
        openapi_url=None if settings.app_env == "production" else "/api/openapi.json",
        openapi_tags=[
            {"name": "health", "description": "Liveness and readiness probes"},
            {"name": "sessions", "description": "Conversation sessions and the tool-call contract"},
            {"name": "wallet", "description": "Agent wallet address and balances"},
        ],
        license_info={"name": "MIT", "url": "https://opensource.org/licenses/MIT"},
    )

    # ── CORS: configurable origins ───────────────────────────────────
    allowed_origins = [o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "Accept"],
        expose_headers=["X-Request-ID"],
    )

    # ── Access logging middleware ────────────────────────────────────
    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            extra={"method": request.method, "path": request.url.path,
                   "status_code": response.status_code, "duration_ms": round(elapsed, 1)},
        )
        return response

    # Added last so it wraps the access log and the request ID is already set.
    app.add_middleware(RequestIDMiddleware)

    # ── Routes ───────────────────────────────────────────────────────
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(sessions.router, prefix="/api/v1/sessions", tags=["sessions"])
    app.include_router(wallet.router, prefix="/api/v1/wallet", tags=["wallet"])

    # ── Structured error handlers ──────────────────────────────────
    register_error_handlers(app)

    return app
