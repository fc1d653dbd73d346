from __future__ import annotations

import uuid
from datetime import datetime, timezone

from messaging_service.application.dto.principal import Principal
from messaging_service.application.policies.permissions import load_accessible_conversation
from messaging_service.application.uow import UnitOfWork
from messaging_service.domain.events.conversation_updated import ConversationUpdated
from messaging_service.domain.events.messages_seen import MessagesSeen
from messaging_service.services.events import enqueue


async def mark_seen(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> int:
    """Mark everything in the conversation seen by the caller.

    Returns how many messages were newly marked. Calling it again right away
    returns 0 and emits nothing.
    """
    await load_accessible_conversation(conversation_id, principal, uow)
    user_id = principal.user_id
    now = datetime.now(timezone.utc)

    seen_ids = await uow.messages_w.mark_seen(conversation_id, user_id, now)
    latest = (await uow.messages.latest_for_conversations([conversation_id])).get(
        conversation_id
    )
    await uow.read_state_w.reset_unread(
        conversation_id, user_id, latest.id if latest else None, now,
    )

    if seen_ids:
        participant_ids = await uow.participants.list_user_ids(conversation_id)
        await enqueue(
            uow,
            MessagesSeen(
                conversation_id=conversation_id,
                seer_id=user_id,
                message_ids=tuple(seen_ids),
                seen_at=now,
                recipient_ids=tuple(p for p in participant_ids if p != user_id),
            ),
            ConversationUpdated(conversation_id=conversation_id, unread_counts={user_id: 0}),
        )

    await uow.commit()
    return len(seen_ids)
