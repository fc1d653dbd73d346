from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: int | None
    type: str
    content: str | None
    image: str | None
    client_msg_id: UUID | None
    created_at: datetime
    seq: int | None = None
    seen_by: frozenset[int] = field(default_factory=frozenset)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return self.created_at, self.seq or 0
