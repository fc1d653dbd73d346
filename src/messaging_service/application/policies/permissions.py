from __future__ import annotations

from uuid import UUID

from messaging_service.application.dto.principal import Principal
from messaging_service.application.exceptions import (
    ConversationNotFound,
    Unauthorized,
)
from messaging_service.application.repositories.participant import ParticipantReader
from messaging_service.application.uow import UnitOfWork
from messaging_service.domain.entities.conversation import Conversation


async def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
    participants: ParticipantReader,
    *,
    denied: type[Unauthorized] = Unauthorized,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not a participant."""
    if conversation is None:
        raise ConversationNotFound("Conversation not found")

    is_member = await participants.is_participant(conversation.id, principal.user_id)
    if not is_member:
        raise denied("Not a participant of this conversation")

    return conversation


async def load_accessible_conversation(
    conversation_id: UUID,
    principal: Principal,
    uow: UnitOfWork,
    *,
    denied: type[Unauthorized] = Unauthorized,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return await assert_conversation_access(
        principal, conversation, uow.participants, denied=denied,
    )
