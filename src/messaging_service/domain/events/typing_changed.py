from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from messaging_service.domain.value_objects.enums import EventType


@dataclass(frozen=True, slots=True)
class TypingChanged:
    conversation_id: UUID
    user_id: int
    is_typing: bool
    recipient_ids: tuple[int, ...]

    @property
    def event_type(self) -> EventType:
        return EventType.TYPING_START if self.is_typing else EventType.TYPING_STOP

    def to_payload(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.conversation_id),
            "recipient_ids": list(self.recipient_ids),
            "user_id": self.user_id,
        }
