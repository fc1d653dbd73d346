from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from messaging_service.domain.entities.message import Message
from messaging_service.domain.value_objects.enums import EventType, MessageStatus


def message_payload(message: Message) -> dict[str, Any]:
    """JSON-safe rendering of a persisted message, shared by push events."""
    return {
        "id": str(message.id),
        "seq": message.seq,
        "conversation_id": str(message.conversation_id),
        "sender_id": message.sender_id,
        "type": message.type,
        "content": message.content,
        "image": message.image,
        "client_msg_id": str(message.client_msg_id) if message.client_msg_id else None,
        "created_at": message.created_at.isoformat(),
        "status": MessageStatus.DELIVERED.value,
        "seen_by": sorted(message.seen_by),
    }


@dataclass(frozen=True, slots=True)
class MessageCreated:
    message: Message
    recipient_ids: tuple[int, ...]

    event_type = EventType.MESSAGE_NEW

    def to_payload(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.message.conversation_id),
            "recipient_ids": list(self.recipient_ids),
            "message": message_payload(self.message),
        }
