"""Progress event broadcasting: a write-only side channel for dashboards.

::

    EventBroadcaster
      ├── InMemoryBroadcaster → per-session subscriber queues (WebSocket)
      ├── RedisBroadcaster    → Redis pub/sub channel per session
      └── FanoutBroadcaster   → several of the above
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any

import redis.asyncio as aioredis

from pyra.core.types import ProgressEvent

logger = logging.getLogger(__name__)


class EventBroadcaster(ABC):
    @abstractmethod
    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryBroadcaster(EventBroadcaster):
    """Fan events out to in-process subscriber queues.

    Slow subscribers lose their oldest events rather than blocking the
    publisher. The last ``history_size`` events per session are kept so a
    dashboard that connects late can catch up.
    """

    def __init__(self, queue_size: int = 100, history_size: int = 50) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)
        self._history: dict[str, deque[dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=history_size)
        )

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        payload = event.to_payload()
        self._history[session_id].append(payload)
        for queue in list(self._subscribers.get(session_id, ())):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(payload)

    def subscribe(self, session_id: str) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        subscribers = self._subscribers.get(session_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[session_id]

    def recent(self, session_id: str) -> list[dict[str, Any]]:
        return list(self._history.get(session_id, ()))

    def forget(self, session_id: str) -> None:
        self._history.pop(session_id, None)


class RedisBroadcaster(EventBroadcaster):
    """Publish events as JSON on ``{prefix}:{session_id}``."""

    def __init__(self, url: str, prefix: str = "pyra:events") -> None:
        self._url = url
        self._prefix = prefix
        self._client: Any | None = None

    def channel(self, session_id: str) -> str:
        return f"{self._prefix}:{session_id}"

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = aioredis.from_url(
                self._url, decode_responses=True, socket_connect_timeout=2
            )
        return self._client

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        client = await self._get_client()
        await client.publish(self.channel(session_id), json.dumps(event.to_payload()))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class FanoutBroadcaster(EventBroadcaster):
    """Publish to every child broadcaster; one failing child does not stop the rest."""

    def __init__(self, *children: EventBroadcaster) -> None:
        self._children = children

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        for child in self._children:
            try:
                await child.publish(session_id, event)
            except Exception as exc:
                logger.warning("%s publish failed: %s", type(child).__name__, exc)

    async def close(self) -> None:
        for child in self._children:
            await child.close()


async def emit_safely(
    broadcaster: EventBroadcaster | None, session_id: str, event: ProgressEvent
) -> None:
    """Publish ``event``; publishing problems are logged and never propagate."""
    if broadcaster is None:
        return
    event.session_id = session_id
    try:
        await broadcaster.publish(session_id, event)
    except Exception as exc:
        logger.warning(
            "Event publish failed for %s/%s: %s", event.step.value, event.state.value, exc,
            extra={"session_id": session_id},
        )
