from __future__ import annotations

from typing import Any

from messaging_service.domain.entities.participant import Participant


def entity_to_values(entity: Participant) -> dict[str, Any]:
    return {
        "conversation_id": entity.conversation_id,
        "user_id": entity.user_id,
        "joined_at": entity.joined_at,
    }
