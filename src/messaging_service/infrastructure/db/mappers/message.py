from __future__ import annotations

from messaging_service.domain.entities.message import Message
from messaging_service.infrastructure.db.models.message import MessageModel


def model_to_entity(
    model: MessageModel, seen_by: frozenset[int] = frozenset()
) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        type=model.type,
        content=model.content,
        image=model.image,
        client_msg_id=model.client_msg_id,
        created_at=model.created_at,
        seq=model.seq,
        seen_by=seen_by,
    )


def entity_to_values(entity: Message) -> dict:
    """Insert values; ``seq`` is assigned by the database."""
    return {
        "id": entity.id,
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "type": entity.type,
        "content": entity.content,
        "image": entity.image,
        "client_msg_id": entity.client_msg_id,
        "created_at": entity.created_at,
    }
