from __future__ import annotations

from typing import Any, Protocol

from messaging_service.application.uow import UnitOfWork
from messaging_service.domain.value_objects.enums import EventType


class DomainEvent(Protocol):
    @property
    def event_type(self) -> EventType: ...

    def to_payload(self) -> dict[str, Any]: ...


async def enqueue(uow: UnitOfWork, *events: DomainEvent) -> None:
    """Stage events in the outbox; they are published once the UoW commits."""
    for event in events:
        await uow.outbox.add(event.event_type.value, event.to_payload())
