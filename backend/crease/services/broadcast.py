"""Per-match "state changed" notifications.

Subscribers only learn *that* a match changed; they re-fetch the live state
from the API instead of trusting a pushed payload. The transport behind the
channel is swappable: Redis pub/sub across processes, or in-process queues.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis

from ..config import BROADCAST_BACKEND, REDIS_URL

logger = logging.getLogger(__name__)


def changed_signal(mid: str) -> dict:
    return {"type": "changed", "matchId": mid}


def channel_name(mid: str) -> str:
    return f"match:{mid}"


class RedisChannel:
    """Fan-out through a Redis pub/sub channel per match."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    async def publish(self, mid: str) -> None:
        await self.client.publish(channel_name(mid), json.dumps(changed_signal(mid)))

    @asynccontextmanager
    async def subscribe(self, mid: str) -> AsyncIterator[AsyncIterator[dict]]:
        async with self.client.pubsub() as pubsub:
            await pubsub.subscribe(channel_name(mid))
            try:
                yield self._signals(pubsub)
            finally:
                await pubsub.unsubscribe(channel_name(mid))

    @staticmethod
    async def _signals(pubsub) -> AsyncIterator[dict]:
        async for msg in pubsub.listen():
            if msg.get("type") == "message":
                yield json.loads(msg["data"])


class LocalChannel:
    """In-process fan-out; subscribers must share the publisher's event loop."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    async def publish(self, mid: str) -> None:
        for queue in list(self._subscribers.get(mid, ())):
            queue.put_nowait(changed_signal(mid))

    @asynccontextmanager
    async def subscribe(self, mid: str) -> AsyncIterator[AsyncIterator[dict]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(mid, set()).add(queue)
        try:
            yield self._signals(queue)
        finally:
            subscribers = self._subscribers.get(mid)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._subscribers.pop(mid, None)

    def subscriber_count(self, mid: str) -> int:
        return len(self._subscribers.get(mid, ()))

    @staticmethod
    async def _signals(queue: asyncio.Queue) -> AsyncIterator[dict]:
        while True:
            yield await queue.get()


def build_channel(backend: str = BROADCAST_BACKEND):
    if backend == "memory":
        return LocalChannel()
    if backend != "redis":
        logger.warning("Unknown BROADCAST_BACKEND %r; using redis", backend)
    return RedisChannel(redis.from_url(REDIS_URL, decode_responses=True))


channel = build_channel()


async def notify_changed(mid: str) -> None:
    """Signal subscribers of ``mid``; delivery failures are logged, not raised.

    Called only after the mutation has been committed, so a broker outage
    never rolls back a recorded delivery.
    """

    try:
        await channel.publish(mid)
    except (redis.ConnectionError, redis.TimeoutError) as exc:
        logger.warning("Broadcast for match %s failed: %s", mid, exc)
