from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from messaging_service.domain.entities.conversation import Conversation
from messaging_service.domain.entities.message import Message
from messaging_service.domain.events.message_created import message_payload
from messaging_service.domain.value_objects.enums import EventType


@dataclass(frozen=True, slots=True)
class ConversationUpdated:
    """Unread counters, last-message preview or group details changed.

    ``unread_counts`` maps each recipient to its own counter; the fan-out
    splits the event so every user only sees their own value.
    """

    conversation_id: UUID
    unread_counts: dict[int, int]
    last_message: Message | None = None
    conversation: Conversation | None = None

    event_type = EventType.CONVERSATION_UPDATED

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "conversation_id": str(self.conversation_id),
            "recipient_ids": list(self.unread_counts),
            "unread_counts": {str(uid): n for uid, n in self.unread_counts.items()},
            "last_message": (
                message_payload(self.last_message) if self.last_message else None
            ),
        }
        if self.conversation is not None:
            payload["name"] = self.conversation.name
            payload["image"] = self.conversation.image
        return payload
