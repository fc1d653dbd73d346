from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from messaging_service.domain.value_objects.enums import EventType


@dataclass(frozen=True, slots=True)
class MessagesSeen:
    conversation_id: UUID
    seer_id: int
    message_ids: tuple[UUID, ...]
    seen_at: datetime
    recipient_ids: tuple[int, ...]

    event_type = EventType.MESSAGE_SEEN

    def to_payload(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.conversation_id),
            "recipient_ids": list(self.recipient_ids),
            "seer_id": self.seer_id,
            "message_ids": [str(mid) for mid in self.message_ids],
            "seen_at": self.seen_at.isoformat(),
        }
