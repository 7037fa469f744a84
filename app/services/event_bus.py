"""
Pipeline event fan-out.

Payloads are JSON strings. Each subscription may be scoped to one recipient; payloads carrying a
`recipient_id` only reach unscoped subscriptions and that recipient's. With `SP_REDIS_URL` set,
publishing goes through redis pub/sub so every worker process sees every event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger("sp.notifications")

QUEUE_SIZE = 200


@dataclass(eq=False)
class _Subscription:
    queue: asyncio.Queue[str]
    recipient_id: str | None = None

    def wants(self, recipient_id: str | None) -> bool:
        return self.recipient_id is None or recipient_id is None or self.recipient_id == recipient_id

    def offer(self, data: str) -> None:
        if self.queue.full():
            # Slow consumer: its oldest event is dropped.
            self.queue.get_nowait()
        self.queue.put_nowait(data)


def _recipient_of(data: str) -> str | None:
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return None
    return payload.get("recipient_id") if isinstance(payload, dict) else None


class EventBus:
    def __init__(self, redis_url: str | None = None, channel: str | None = None) -> None:
        self._subscriptions: dict[asyncio.Queue[str], _Subscription] = {}
        self._lock = asyncio.Lock()
        self._redis_url = (settings.redis_url if redis_url is None else redis_url).strip()
        self._channel = channel or settings.event_channel
        self._redis: redis.Redis | None = None
        self._listener: asyncio.Task | None = None

    @property
    def uses_redis(self) -> bool:
        return bool(self._redis_url)

    async def _deliver(self, data: str, recipient_id: str | None) -> int:
        async with self._lock:
            targets = [sub for sub in self._subscriptions.values() if sub.wants(recipient_id)]
            for sub in targets:
                sub.offer(data)
        return len(targets)

    async def _connect(self) -> redis.Redis | None:
        if not self.uses_redis:
            return None
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._relay(self._redis))
        return self._redis

    async def _relay(self, client: redis.Redis) -> None:
        pubsub = client.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                data = message.get("data")
                if isinstance(data, bytes):
                    data = data.decode()
                if isinstance(data, str):
                    await self._deliver(data, _recipient_of(data))
        except RedisError:
            logger.warning("event_bus_relay_stopped", extra={"channel": self._channel}, exc_info=True)
        finally:
            await pubsub.close()

    async def subscribe(self, recipient_id: str | None = None) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=QUEUE_SIZE)
        async with self._lock:
            self._subscriptions[queue] = _Subscription(queue=queue, recipient_id=recipient_id)
        await self._connect()
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        async with self._lock:
            self._subscriptions.pop(queue, None)

    async def publish(self, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
        client = await self._connect()
        if client is not None:
            try:
                await client.publish(self._channel, data)
                return
            except RedisError:
                logger.warning("event_bus_redis_publish_failed", extra={"channel": self._channel}, exc_info=True)
        await self._deliver(data, payload.get("recipient_id"))

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            self._listener = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


event_bus = EventBus()
