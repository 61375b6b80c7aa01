"""Shared fixtures for the PYRA test suite."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable
from unittest.mock import AsyncMock

import pytest

from pyra.analyzer.scan_provider import SecurityScanProvider, StaticScanProvider
from pyra.core.types import EventType, PipelineStep, ProgressEvent, StepState
from pyra.execution.dispatcher import TransactionDispatcher
from pyra.gates import (
    AddressValidationGate,
    ContractDetectionGate,
    NameResolutionGate,
    SecurityScanGate,
    SourceVerificationGate,
)
from pyra.ingestion.source_registry import SimulatedSourceRegistry, SourceRegistry
from pyra.pipeline.events import EventBroadcaster
from pyra.pipeline.orchestrator import GuardedCommandPipeline
from pyra.pipeline.session import Session
from pyra.providers.chain_reader import ChainReader, SimulatedChainReader
from pyra.providers.naming import NameResolver, StaticNameResolver


# ── Broadcasters ─────────────────────────────────────────────────────────────


class RecordingBroadcaster(EventBroadcaster):
    """Keeps every published event in order."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        self.events.append(event)

    def transitions(self) -> list[tuple[PipelineStep, StepState]]:
        return [(e.step, e.state) for e in self.events if e.type == EventType.GATE_UPDATE]

    def of_type(self, event_type: EventType) -> list[ProgressEvent]:
        return [e for e in self.events if e.type == event_type]


class ExplodingBroadcaster(EventBroadcaster):
    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        raise ConnectionError("dashboard unreachable")


# ── Collaborators ────────────────────────────────────────────────────────────


def spy(obj: object, name: str) -> AsyncMock:
    """Replace an async method with an ``AsyncMock`` that still calls through."""
    mock = AsyncMock(wraps=getattr(obj, name))
    setattr(obj, name, mock)
    return mock


@dataclass
class Collaborators:
    resolver: NameResolver
    reader: ChainReader
    registry: SourceRegistry
    scanner: SecurityScanProvider
    dispatcher: TransactionDispatcher


@pytest.fixture
def collaborators() -> Collaborators:
    """Simulated providers whose entry points are spied on."""
    resolver = StaticNameResolver()
    reader = SimulatedChainReader()
    registry = SimulatedSourceRegistry()
    scanner = StaticScanProvider()
    dispatcher = TransactionDispatcher(simulate=True, simulated_delay=0)
    spy(resolver, "resolve")
    spy(reader, "has_code")
    spy(registry, "fetch_source")
    spy(scanner, "analyze")
    spy(dispatcher, "execute")
    return Collaborators(resolver, reader, registry, scanner, dispatcher)


@pytest.fixture
def recorder() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def make_pipeline(
    collaborators: Collaborators, recorder: RecordingBroadcaster
) -> Callable[..., GuardedCommandPipeline]:
    def _make(
        broadcaster: EventBroadcaster | None = None,
        gate_timeout: float = 5.0,
        **overrides: object,
    ) -> GuardedCommandPipeline:
        c = collaborators
        return GuardedCommandPipeline(
            name_gate=NameResolutionGate(overrides.get("resolver", c.resolver)),
            address_gate=AddressValidationGate(),
            contract_gate=ContractDetectionGate(overrides.get("reader", c.reader)),
            source_gate=SourceVerificationGate(overrides.get("registry", c.registry)),
            scan_gate=SecurityScanGate(overrides.get("scanner", c.scanner)),
            dispatcher=overrides.get("dispatcher", c.dispatcher),
            broadcaster=broadcaster or recorder,
            gate_timeout=gate_timeout,
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline: Callable[..., GuardedCommandPipeline]) -> GuardedCommandPipeline:
    return make_pipeline()


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def exploding_broadcaster() -> ExplodingBroadcaster:
    return ExplodingBroadcaster()
