from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

# (event_type, data) as published, with routing keys still in ``data``
EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


class EventPublisher(Protocol):
    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        """``payload`` carries ``event_type`` next to the event data."""
        ...


class EventSubscriber(Protocol):
    @property
    def running(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
