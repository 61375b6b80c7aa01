"""Supported EVM chain configurations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a supported EVM chain."""

    chain_id: int
    name: str
    short_name: str
    default_rpc_url: str
    explorer_url: str
    explorer_api_url: str
    native_currency: str = "ETH"
    native_decimals: int = 18
    is_testnet: bool = False
    ens_registry: str = ""  # empty: no ENS deployment on this chain


# ── Chain Registry ───────────────────────────────────────────────────────────

# Same registry deployment on mainnet and Sepolia.
ENS_REGISTRY = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"

CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        chain_id=1,
        name="Ethereum Mainnet",
        short_name="eth",
        default_rpc_url="https://eth.llamarpc.com",
        explorer_url="https://etherscan.io",
        explorer_api_url="https://api.etherscan.io/api",
        ens_registry=ENS_REGISTRY,
    ),
    "sepolia": ChainConfig(
        chain_id=11155111,
        name="Sepolia Testnet",
        short_name="sep",
        default_rpc_url="https://rpc.sepolia.org",
        explorer_url="https://sepolia.etherscan.io",
        explorer_api_url="https://api-sepolia.etherscan.io/api",
        ens_registry=ENS_REGISTRY,
        is_testnet=True,
    ),
    "base": ChainConfig(
        chain_id=8453,
        name="Base",
        short_name="base",
        default_rpc_url="https://mainnet.base.org",
        explorer_url="https://basescan.org",
        explorer_api_url="https://api.basescan.org/api",
    ),
    "polygon": ChainConfig(
        chain_id=137,
        name="Polygon Mainnet",
        short_name="matic",
        default_rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
        explorer_api_url="https://api.polygonscan.com/api",
        native_currency="MATIC",
    ),
}


def get_chain_config(chain_name: str) -> ChainConfig | None:
    """Get chain configuration by name."""
    return CHAINS.get(chain_name.lower())


def get_chain_by_id(chain_id: int) -> ChainConfig | None:
    """Get chain configuration by numeric chain id."""
    for chain in CHAINS.values():
        if chain.chain_id == chain_id:
            return chain
    return None
