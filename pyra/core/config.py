"""Core configuration for the PYRA guarded command pipeline."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderMode = Literal["auto", "live", "simulated"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PYRA_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "PYRA Guarded Command Pipeline"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # ── Chain / RPC ──────────────────────────────────────────────────────
    chain: str = "sepolia"
    rpc_url: str = "https://rpc.sepolia.org"
    chain_id: int = 11155111

    # ── Signer ───────────────────────────────────────────────────────────
    agent_address: str = ""  # node-managed account used for eth_sendTransaction
    simulate_transactions: bool = True
    simulated_tx_delay_seconds: float = 1.5
    tx_confirmation_timeout_seconds: float = 120.0
    tx_poll_interval_seconds: float = 2.0

    # ── Providers ────────────────────────────────────────────────────────
    chain_reader: ProviderMode = "auto"
    naming_provider: ProviderMode = "auto"
    source_provider: ProviderMode = "auto"
    scan_provider: ProviderMode = "auto"

    etherscan_api_key: str = ""
    etherscan_api_url: str = ""  # empty: use the chain's explorer API

    kairo_api_key: str = ""
    kairo_api_url: str = "https://api.kairoaisec.com/v1/analyze"
    kairo_severity_threshold: str = "high"

    naming_suffixes: str = ".eth"

    # ── Timeouts ─────────────────────────────────────────────────────────
    http_timeout_seconds: float = 15.0
    gate_timeout_seconds: float = 20.0

    # ── Events ───────────────────────────────────────────────────────────
    event_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    event_channel_prefix: str = "pyra:events"

    @property
    def suffixes(self) -> tuple[str, ...]:
        """Recognised naming-service suffixes, lower-cased."""
        return tuple(
            s.strip().lower() for s in self.naming_suffixes.split(",") if s.strip()
        )

    @property
    def signer_configured(self) -> bool:
        return bool(self.agent_address)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
