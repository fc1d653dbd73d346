from __future__ import annotations

from messaging_service.domain.entities.conversation import Conversation
from messaging_service.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        kind=model.kind,
        name=model.name,
        image=model.image,
        admin_id=model.admin_id,
        direct_key=model.direct_key,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "kind": entity.kind,
        "name": entity.name,
        "image": entity.image,
        "admin_id": entity.admin_id,
        "direct_key": entity.direct_key,
        "last_message_at": entity.last_message_at,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(**entity_to_values(entity))
