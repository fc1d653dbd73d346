from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


def direct_key(user_a: int, user_b: int) -> str:
    """Order-independent key identifying the direct conversation of a user pair."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    kind: str
    name: str | None
    image: str | None
    admin_id: int | None
    direct_key: str | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message_at is None:
            return self.created_at
        return max(self.created_at, self.last_message_at)
