from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from messaging_service.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MessagePage:
    """Newest-first slice of a conversation's history."""

    items: list[Message]
    has_more: bool
    next_cursor: UUID | None
