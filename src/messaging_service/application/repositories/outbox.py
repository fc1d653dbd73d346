from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """Lightweight read-model for the outbox worker."""

    id: int
    event_type: str
    payload: dict[str, Any]
    attempts: int


class OutboxWriter(Protocol):
    async def add(self, event_type: str, payload: dict[str, Any]) -> None: ...

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim due records; concurrent workers never get the same one."""
        ...

    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str) -> None: ...

    async def mark_dead(self, record_id: int, error: str | None) -> None:
        """Park a record that ran out of publish attempts."""
        ...

    async def purge_sent(self, before: datetime) -> int: ...
