"""Redis Pub/Sub: publish side + subscriber background task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from messaging_service.application.ports.bus import EventHandler
from messaging_service.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """Publishes serialized envelopes; see ``serializer`` for the wire format."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(payload.get("event_type", "unknown"), payload)
        await self._redis.publish(channel, raw)


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events.

    A dropped Redis connection is retried after ``reconnect_delay``; events
    published meanwhile are lost for this process, which clients recover
    from by resyncing over REST.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: EventHandler,
        *,
        reconnect_delay: float = 1.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._reconnect_delay = reconnect_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except RedisConnectionError:
                logger.warning(
                    "Redis Pub/Sub connection lost, retrying in %.1fs",
                    self._reconnect_delay,
                )
                await asyncio.sleep(self._reconnect_delay)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self.handle_raw(message["data"])
        finally:
            await pubsub.aclose()

    async def handle_raw(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error processing pubsub message")
