from __future__ import annotations

import uuid
from datetime import datetime, timezone

from messaging_service.application.dto.message import MessagePage
from messaging_service.application.dto.principal import Principal
from messaging_service.application.exceptions import (
    EmptyMessage,
    NotAParticipant,
    ValidationError,
)
from messaging_service.application.policies.permissions import load_accessible_conversation
from messaging_service.application.uow import UnitOfWork
from messaging_service.domain.entities.message import Message
from messaging_service.domain.events.conversation_updated import ConversationUpdated
from messaging_service.domain.events.message_created import MessageCreated
from messaging_service.domain.value_objects.enums import MessageType
from messaging_service.services.events import enqueue

MAX_CONTENT_LENGTH = 5000


async def append_message(
    conversation_id: uuid.UUID,
    principal: Principal,
    content: str | None,
    image: str | None,
    uow: UnitOfWork,
    *,
    client_msg_id: uuid.UUID | None = None,
) -> tuple[Message, bool]:
    """Persist a message and stage its unread/delivery side effects.

    Returns (message, created). When ``client_msg_id`` is given and the
    caller already sent a message with it, the stored message is returned
    with created=False and nothing else happens.
    """
    content = content.strip() if content else None
    if not content and not image:
        raise EmptyMessage("Message must have content or image")
    if content and len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message content cannot exceed {MAX_CONTENT_LENGTH} characters"
        )

    await load_accessible_conversation(
        conversation_id, principal, uow, denied=NotAParticipant,
    )

    if client_msg_id is not None:
        existing = await uow.messages_w.get_by_client_msg_id(
            conversation_id, principal.user_id, client_msg_id,
        )
        if existing is not None:
            return existing, False

    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=principal.user_id,
        type=MessageType.TEXT,
        content=content or None,
        image=image or None,
        client_msg_id=client_msg_id,
        created_at=datetime.now(timezone.utc),
    )
    msg, created = await uow.messages_w.create_if_not_exists(msg)
    if not created:
        return msg, False

    await uow.conversations_w.touch_last_message_at(conversation_id, msg.created_at)
    unread = await uow.read_state_w.increment_unread(conversation_id, principal.user_id)
    participant_ids = await uow.participants.list_user_ids(conversation_id)

    await enqueue(
        uow,
        MessageCreated(message=msg, recipient_ids=tuple(participant_ids)),
        ConversationUpdated(
            conversation_id=conversation_id,
            unread_counts=unread,
            last_message=msg,
        ),
    )
    await uow.commit()
    return msg, True


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    cursor: uuid.UUID | None,
    limit: int,
    uow: UnitOfWork,
) -> MessagePage:
    """Page backwards through history, newest first.

    ``cursor`` is the id of the oldest message of the previous page and is an
    exclusive bound, so messages appended between fetches never shift pages.
    """
    await load_accessible_conversation(conversation_id, principal, uow)

    before: tuple[datetime, int] | None = None
    if cursor is not None:
        anchor = await uow.messages.get_by_id(cursor)
        if anchor is None or anchor.conversation_id != conversation_id:
            raise ValidationError("Invalid cursor")
        before = anchor.sort_key

    rows = await uow.messages.list_messages(
        conversation_id, before=before, limit=limit + 1,
    )
    has_more = len(rows) > limit
    items = rows[:limit]
    return MessagePage(
        items=items,
        has_more=has_more,
        next_cursor=items[-1].id if has_more else None,
    )
