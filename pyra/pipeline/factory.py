"""Wire the pipeline from settings.

Provider selection happens here, once, at startup. Each collaborator is
either the live HTTP implementation or the simulated one; gate logic
never looks at configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pyra.analyzer.scan_provider import (
    KairoScanProvider,
    SecurityScanProvider,
    StaticScanProvider,
)
from pyra.core.chains import ChainConfig, get_chain_by_id, get_chain_config
from pyra.core.config import Settings
from pyra.execution.dispatcher import TransactionDispatcher
from pyra.execution.signer import BalanceReader, RpcBalanceReader, RpcSigner, Signer
from pyra.gates import (
    AddressValidationGate,
    ContractDetectionGate,
    NameResolutionGate,
    SecurityScanGate,
    SourceVerificationGate,
)
from pyra.ingestion.source_registry import (
    EtherscanSourceRegistry,
    SimulatedSourceRegistry,
    SourceRegistry,
)
from pyra.pipeline.events import (
    EventBroadcaster,
    FanoutBroadcaster,
    InMemoryBroadcaster,
    RedisBroadcaster,
)
from pyra.pipeline.orchestrator import GuardedCommandPipeline
from pyra.pipeline.session import SessionStore
from pyra.providers.chain_reader import ChainReader, RpcChainReader, SimulatedChainReader
from pyra.providers.naming import NameResolver, RpcNameResolver, StaticNameResolver
from pyra.providers.rpc import JsonRpcClient

logger = logging.getLogger(__name__)

# Providers whose gates a real transfer must not pass on fixture data.
LIVE_FOR_DISPATCH = ("chain_reader", "naming", "source")


def resolve_chain(settings: Settings) -> ChainConfig:
    chain = get_chain_config(settings.chain) or get_chain_by_id(settings.chain_id)
    if chain is None:
        raise ValueError(f"Unsupported chain: {settings.chain} (id {settings.chain_id})")
    return chain


def use_live(mode: str, credential: str) -> bool:
    """``auto`` goes live only when the provider's credential is configured."""
    if mode == "live":
        return True
    if mode == "simulated":
        return False
    return bool(credential)


@dataclass
class Runtime:
    """Everything the API and CLI need for one process."""

    settings: Settings
    chain: ChainConfig
    pipeline: GuardedCommandPipeline
    sessions: SessionStore
    events: InMemoryBroadcaster
    broadcaster: EventBroadcaster
    rpc: JsonRpcClient
    registry: SourceRegistry
    scanner: SecurityScanProvider
    signer: Signer | None
    balances: BalanceReader
    providers: dict[str, str] = field(default_factory=dict)
    closeables: list[Any] = field(default_factory=list)

    @property
    def name_gate(self) -> NameResolutionGate:
        return self.pipeline.name_gate

    async def close(self) -> None:
        for resource in self.closeables:
            try:
                await resource.close()
            except Exception as exc:
                logger.warning("Error closing %s: %s", type(resource).__name__, exc)


def build_runtime(settings: Settings) -> Runtime:
    """Select providers once and assemble the guarded command pipeline."""
    chain = resolve_chain(settings)
    timeout = settings.http_timeout_seconds
    rpc = JsonRpcClient(settings.rpc_url or chain.default_rpc_url, timeout=timeout)
    closeables: list[Any] = [rpc]
    providers: dict[str, str] = {}

    reader: ChainReader
    if use_live(settings.chain_reader, settings.etherscan_api_key):
        reader = RpcChainReader(rpc)
        providers["chain_reader"] = "rpc"
    else:
        reader = SimulatedChainReader()
        providers["chain_reader"] = "simulated"

    resolver: NameResolver
    if use_live(settings.naming_provider, settings.etherscan_api_key):
        if not chain.ens_registry:
            raise ValueError(
                f"{chain.name} has no ENS registry; set PYRA_NAMING_PROVIDER=simulated"
            )
        resolver = RpcNameResolver(rpc, chain.ens_registry)
        providers["naming"] = "rpc"
    else:
        resolver = StaticNameResolver()
        providers["naming"] = "static"

    registry: SourceRegistry
    if use_live(settings.source_provider, settings.etherscan_api_key):
        registry = EtherscanSourceRegistry(
            settings.etherscan_api_url or chain.explorer_api_url,
            api_key=settings.etherscan_api_key,
            timeout=timeout,
        )
        closeables.append(registry)
        providers["source"] = "etherscan"
    else:
        registry = SimulatedSourceRegistry()
        providers["source"] = "simulated"

    scanner: SecurityScanProvider
    if use_live(settings.scan_provider, settings.kairo_api_key):
        scanner = KairoScanProvider(
            settings.kairo_api_url,
            api_key=settings.kairo_api_key,
            severity_threshold=settings.kairo_severity_threshold,
            timeout=timeout,
        )
        closeables.append(scanner)
        providers["scan"] = "kairo"
    else:
        scanner = StaticScanProvider()
        providers["scan"] = "static"

    signer: Signer | None = None
    if settings.signer_configured:
        signer = RpcSigner(
            rpc,
            settings.agent_address,
            confirmation_timeout=settings.tx_confirmation_timeout_seconds,
            poll_interval=settings.tx_poll_interval_seconds,
            decimals=chain.native_decimals,
        )
    dispatcher = TransactionDispatcher(
        signer=signer,
        simulate=settings.simulate_transactions,
        simulated_delay=settings.simulated_tx_delay_seconds,
        native_currency=chain.native_currency,
        native_decimals=chain.native_decimals,
    )
    providers["dispatch"] = "simulated" if dispatcher.simulated else "rpc"
    if not dispatcher.simulated:
        offline = [k for k in LIVE_FOR_DISPATCH if providers[k] in ("simulated", "static")]
        if offline:
            raise ValueError(
                "Real transaction dispatch needs live chain reader, naming and source providers; "
                f"simulated: {', '.join(offline)}"
            )

    events = InMemoryBroadcaster()
    broadcaster: EventBroadcaster = events
    if settings.event_backend == "redis":
        redis_broadcaster = RedisBroadcaster(settings.redis_url, prefix=settings.event_channel_prefix)
        closeables.append(redis_broadcaster)
        broadcaster = FanoutBroadcaster(events, redis_broadcaster)

    pipeline = GuardedCommandPipeline(
        name_gate=NameResolutionGate(resolver, suffixes=settings.suffixes),
        address_gate=AddressValidationGate(),
        contract_gate=ContractDetectionGate(reader),
        source_gate=SourceVerificationGate(registry),
        scan_gate=SecurityScanGate(scanner),
        dispatcher=dispatcher,
        broadcaster=broadcaster,
        gate_timeout=settings.gate_timeout_seconds,
    )
    logger.info(
        "Pipeline ready on %s: %s",
        chain.name, ", ".join(f"{k}={v}" for k, v in providers.items()),
    )
    return Runtime(
        settings=settings,
        chain=chain,
        pipeline=pipeline,
        sessions=SessionStore(),
        events=events,
        broadcaster=broadcaster,
        rpc=rpc,
        registry=registry,
        scanner=scanner,
        signer=signer,
        balances=signer or RpcBalanceReader(rpc, chain.native_decimals),
        providers=providers,
        closeables=closeables,
    )
