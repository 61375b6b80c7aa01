"""Session routes: the tool-call contract over HTTP plus the event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from pyra.api.deps import get_runtime, lookup_session
from pyra.pipeline.commands import ToolCall, ToolResponse
from pyra.pipeline.factory import Runtime

logger = logging.getLogger(__name__)

router = APIRouter()


class UtteranceRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


@router.post("", status_code=201)
async def create_session(runtime: Runtime = Depends(get_runtime)) -> dict:
    session = runtime.sessions.create()
    logger.info("Session created", extra={"session_id": session.session_id})
    return session.snapshot()


@router.get("/{session_id}")
async def get_session(session_id: str, runtime: Runtime = Depends(get_runtime)) -> dict:
    return lookup_session(runtime, session_id).snapshot()


@router.delete("/{session_id}")
async def delete_session(session_id: str, runtime: Runtime = Depends(get_runtime)) -> dict:
    """End a conversation; anything still pending is discarded, never executed."""
    session = lookup_session(runtime, session_id)
    async with session.lock:
        session.clear()
    runtime.sessions.remove(session_id)
    runtime.events.forget(session_id)
    logger.info("Session closed", extra={"session_id": session_id})
    return {"session_id": session_id, "deleted": True}


@router.post("/{session_id}/command", response_model=ToolResponse)
async def run_command(
    session_id: str, call: ToolCall, runtime: Runtime = Depends(get_runtime)
) -> ToolResponse:
    session = lookup_session(runtime, session_id)
    return await runtime.pipeline.handle(session, call)


@router.post("/{session_id}/utterance", response_model=ToolResponse)
async def relay_utterance(
    session_id: str, body: UtteranceRequest, runtime: Runtime = Depends(get_runtime)
) -> ToolResponse:
    session = lookup_session(runtime, session_id)
    return await runtime.pipeline.respond(session, body.text)


@router.websocket("/{session_id}/events")
async def stream_events(websocket: WebSocket, session_id: str) -> None:
    """Replay recent progress events, then stream new ones as they happen."""
    runtime: Runtime | None = getattr(websocket.app.state, "runtime", None)
    if runtime is None or runtime.sessions.get(session_id) is None:
        await websocket.close(code=4404, reason="Session not found")
        return

    await websocket.accept()
    queue = runtime.events.subscribe(session_id)
    forwarder: asyncio.Task[None] | None = None
    try:
        for payload in runtime.events.recent(session_id):
            await websocket.send_json(payload)
        forwarder = asyncio.create_task(_forward(websocket, queue))
        # The stream is one-way; inbound frames are read only to notice the disconnect.
        while (await websocket.receive())["type"] != "websocket.disconnect":
            pass
    except WebSocketDisconnect:
        logger.debug("Event stream disconnected during replay", extra={"session_id": session_id})
    finally:
        if forwarder is not None:
            forwarder.cancel()
        runtime.events.unsubscribe(session_id, queue)


async def _forward(websocket: WebSocket, queue: asyncio.Queue[dict[str, Any]]) -> None:
    while True:
        await websocket.send_json(await queue.get())
