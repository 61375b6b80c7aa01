"""Tests for the progress event broadcasters."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from pyra.core.types import PipelineStep, ProgressEvent, StepState
from pyra.pipeline.events import (
    FanoutBroadcaster,
    InMemoryBroadcaster,
    RedisBroadcaster,
    emit_safely,
)


def _event(step: PipelineStep = PipelineStep.VALIDATION, state: StepState = StepState.RUNNING) -> ProgressEvent:
    return ProgressEvent(step=step, state=state)


class TestInMemoryBroadcaster:
    @pytest.mark.asyncio
    async def test_subscribers_receive_payloads(self):
        broadcaster = InMemoryBroadcaster()
        queue = broadcaster.subscribe("s1")
        other = broadcaster.subscribe("s2")

        await broadcaster.publish("s1", _event())

        payload = queue.get_nowait()
        assert payload["step"] == "VALIDATION"
        assert payload["state"] == "RUNNING"
        assert "detail" not in payload
        assert other.empty()

    @pytest.mark.asyncio
    async def test_history_replay_and_forget(self):
        broadcaster = InMemoryBroadcaster(history_size=2)
        for state in (StepState.RUNNING, StepState.PASSED, StepState.FAILED):
            await broadcaster.publish("s1", _event(state=state))

        assert [p["state"] for p in broadcaster.recent("s1")] == ["PASSED", "FAILED"]

        broadcaster.forget("s1")
        assert broadcaster.recent("s1") == []

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        broadcaster = InMemoryBroadcaster(queue_size=1)
        queue = broadcaster.subscribe("s1")

        await broadcaster.publish("s1", _event(state=StepState.RUNNING))
        await broadcaster.publish("s1", _event(state=StepState.PASSED))

        assert queue.qsize() == 1
        assert queue.get_nowait()["state"] == "PASSED"

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        broadcaster = InMemoryBroadcaster()
        queue = broadcaster.subscribe("s1")
        broadcaster.unsubscribe("s1", queue)
        broadcaster.unsubscribe("unknown", queue)

        await broadcaster.publish("s1", _event())

        assert queue.empty()


class TestFanoutBroadcaster:
    @pytest.mark.asyncio
    async def test_failing_child_does_not_stop_others(self):
        failing = AsyncMock()
        failing.publish.side_effect = ConnectionError("redis down")
        healthy = InMemoryBroadcaster()
        fanout = FanoutBroadcaster(failing, healthy)

        await fanout.publish("s1", _event())

        assert len(healthy.recent("s1")) == 1

    @pytest.mark.asyncio
    async def test_close_closes_children(self):
        child = AsyncMock()
        await FanoutBroadcaster(child).close()
        child.close.assert_awaited_once()


class TestEmitSafely:
    @pytest.mark.asyncio
    async def test_stamps_session_id(self):
        broadcaster = InMemoryBroadcaster()
        event = _event()

        await emit_safely(broadcaster, "s1", event)

        assert event.session_id == "s1"
        assert broadcaster.recent("s1")[0]["session_id"] == "s1"

    @pytest.mark.asyncio
    async def test_publish_errors_are_swallowed(self):
        broadcaster = AsyncMock()
        broadcaster.publish.side_effect = RuntimeError("boom")

        await emit_safely(broadcaster, "s1", _event())

    @pytest.mark.asyncio
    async def test_no_broadcaster(self):
        await emit_safely(None, "s1", _event())


class TestRedisBroadcaster:
    @pytest.mark.asyncio
    async def test_publishes_json_on_session_channel(self):
        client = AsyncMock()
        with patch("pyra.pipeline.events.aioredis.from_url", return_value=client) as from_url:
            broadcaster = RedisBroadcaster("redis://localhost:6379/0", prefix="test:events")
            await broadcaster.publish("s1", _event(state=StepState.PASSED))
            await broadcaster.publish("s1", _event(state=StepState.FAILED))
            await broadcaster.close()

        from_url.assert_called_once()
        channel, body = client.publish.await_args_list[0].args
        assert channel == "test:events:s1"
        assert json.loads(body)["state"] == "PASSED"
        client.aclose.assert_awaited_once()
