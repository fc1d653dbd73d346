from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Callable

from messaging_service.application.ports.bus import EventPublisher
from messaging_service.domain.events.typing_changed import TypingChanged

logger = logging.getLogger(__name__)

_Key = tuple[uuid.UUID, int]


class TypingTracker:
    """Ephemeral typing state for the users connected to this process.

    Nothing here is persisted. Each active typist holds a timer that publishes
    ``typing:stop`` on its own when the client goes quiet.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        channel: str,
        *,
        ttl: float = 3.0,
        throttle: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._publisher = publisher
        self._channel = channel
        self._ttl = ttl
        self._throttle = throttle
        self._clock = clock
        self._timers: dict[_Key, asyncio.TimerHandle] = {}
        self._last_start: dict[_Key, float] = {}
        self._pending: set[asyncio.Task[None]] = set()

    def is_typing(self, conversation_id: uuid.UUID, user_id: int) -> bool:
        return (conversation_id, user_id) in self._timers

    async def start(
        self,
        conversation_id: uuid.UUID,
        user_id: int,
        recipient_ids: tuple[int, ...],
    ) -> bool:
        """Returns True when a ``typing:start`` was published."""
        key = (conversation_id, user_id)
        now = self._clock()
        was_typing = key in self._timers
        self._arm(key, recipient_ids)

        last = self._last_start.get(key)
        if was_typing and last is not None and now - last < self._throttle:
            return False
        self._last_start[key] = now
        await self._publish(TypingChanged(conversation_id, user_id, True, recipient_ids))
        return True

    async def stop(
        self,
        conversation_id: uuid.UUID,
        user_id: int,
        recipient_ids: tuple[int, ...],
    ) -> bool:
        key = (conversation_id, user_id)
        self._last_start.pop(key, None)
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        await self._publish(TypingChanged(conversation_id, user_id, False, recipient_ids))
        return True

    async def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._last_start.clear()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _arm(self, key: _Key, recipient_ids: tuple[int, ...]) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self._ttl, self._expire, key, recipient_ids)

    def _expire(self, key: _Key, recipient_ids: tuple[int, ...]) -> None:
        self._timers.pop(key, None)
        self._last_start.pop(key, None)
        conversation_id, user_id = key
        task = asyncio.create_task(
            self._publish(TypingChanged(conversation_id, user_id, False, recipient_ids))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, event: TypingChanged) -> None:
        payload = {"event_type": event.event_type.value, **event.to_payload()}
        try:
            await self._publisher.publish(self._channel, payload)
        except Exception:
            # Typing is best-effort; a lost indicator expires client-side.
            logger.exception("Failed to publish %s", event.event_type.value)
