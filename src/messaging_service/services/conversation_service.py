from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from messaging_service.application.dto.conversation import (
    ConversationPage,
    ConversationSummary,
    UnreadTotals,
)
from messaging_service.application.dto.principal import Principal
from messaging_service.application.exceptions import (
    InsufficientMembers,
    InvalidParticipants,
    NotGroupAdmin,
    ValidationError,
)
from messaging_service.application.policies.permissions import load_accessible_conversation
from messaging_service.application.uow import UnitOfWork
from messaging_service.domain.entities.conversation import Conversation, direct_key
from messaging_service.domain.entities.message import Message
from messaging_service.domain.entities.participant import Participant
from messaging_service.domain.events.conversation_updated import ConversationUpdated
from messaging_service.domain.value_objects.enums import ConversationKind, MessageType
from messaging_service.services.events import enqueue

logger = logging.getLogger(__name__)

MIN_GROUP_PARTICIPANTS = 3
MAX_GROUP_PARTICIPANTS = 100
MAX_GROUP_NAME_LENGTH = 100


async def _add_members(
    conversation_id: uuid.UUID,
    user_ids: list[int],
    now: datetime,
    uow: UnitOfWork,
) -> None:
    await uow.participants_w.add_many(
        [
            Participant(conversation_id=conversation_id, user_id=uid, joined_at=now)
            for uid in user_ids
        ]
    )
    await uow.read_state_w.create_many(conversation_id, user_ids)


def _clean_group_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name is required")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        raise ValidationError(
            f"Group name cannot exceed {MAX_GROUP_NAME_LENGTH} characters"
        )
    return name


async def create_direct_conversation(
    principal: Principal,
    participant_id: int,
    uow: UnitOfWork,
) -> tuple[Conversation, bool]:
    """Return the direct conversation between the caller and ``participant_id``.

    Returns (conversation, created). The pair is unordered: A→B and B→A
    resolve to the same conversation.
    """
    if participant_id == principal.user_id:
        raise InvalidParticipants("Cannot create a conversation with yourself")

    key = direct_key(principal.user_id, participant_id)
    existing = await uow.conversations.get_direct(key)
    if existing is not None:
        return existing, False

    now = datetime.now(timezone.utc)
    conversation = Conversation(
        id=uuid.uuid4(),
        kind=ConversationKind.DIRECT,
        name=None,
        image=None,
        admin_id=None,
        direct_key=key,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )
    conversation, created = await uow.conversations_w.create_direct_if_not_exists(
        conversation
    )
    if not created:
        # A concurrent request won the insert.
        return conversation, False

    await _add_members(
        conversation.id, sorted({principal.user_id, participant_id}), now, uow,
    )
    await uow.commit()
    logger.info("Created direct conversation %s (%s)", conversation.id, key)
    return conversation, True


async def create_group_conversation(
    principal: Principal,
    name: str,
    participant_ids: list[int],
    image: str | None,
    uow: UnitOfWork,
) -> Conversation:
    """Create a group owned by the caller.

    The caller is always a member; listing it again in ``participant_ids``
    (or listing anyone twice) has no effect.
    """
    name = _clean_group_name(name)
    others = sorted(set(participant_ids) - {principal.user_id})
    total = len(others) + 1
    if total < MIN_GROUP_PARTICIPANTS:
        raise InsufficientMembers(
            f"Group must have at least {MIN_GROUP_PARTICIPANTS} participants"
        )
    if total > MAX_GROUP_PARTICIPANTS:
        raise ValidationError(
            f"Group cannot exceed {MAX_GROUP_PARTICIPANTS} participants"
        )

    now = datetime.now(timezone.utc)
    conversation = await uow.conversations_w.create(
        Conversation(
            id=uuid.uuid4(),
            kind=ConversationKind.GROUP,
            name=name,
            image=image or None,
            admin_id=principal.user_id,
            direct_key=None,
            last_message_at=now,
            created_at=now,
            updated_at=now,
        )
    )
    members = [principal.user_id, *others]
    await _add_members(conversation.id, members, now, uow)

    system_msg, _ = await uow.messages_w.create_if_not_exists(
        Message(
            id=uuid.uuid4(),
            conversation_id=conversation.id,
            sender_id=None,
            type=MessageType.SYSTEM,
            content=f"{name} created",
            image=None,
            client_msg_id=None,
            created_at=now,
        )
    )
    await enqueue(
        uow,
        ConversationUpdated(
            conversation_id=conversation.id,
            unread_counts={uid: 0 for uid in members},
            last_message=system_msg,
        ),
    )
    await uow.commit()
    logger.info(
        "Created group conversation %s with %d members", conversation.id, len(members),
    )
    return conversation


async def _summarize(
    conversations: list[Conversation],
    user_id: int,
    uow: UnitOfWork,
) -> list[ConversationSummary]:
    ids = [c.id for c in conversations]
    if not ids:
        return []
    members = await uow.participants.list_user_ids_for(ids)
    unread = await uow.read_state.unread_counts(user_id, ids)
    latest = await uow.messages.latest_for_conversations(ids)
    return [
        ConversationSummary(
            conversation=c,
            participant_ids=members.get(c.id, []),
            unread_count=unread.get(c.id, 0),
            last_message=latest.get(c.id),
        )
        for c in conversations
    ]


async def list_user_conversations(
    principal: Principal,
    page: int,
    limit: int,
    uow: UnitOfWork,
) -> ConversationPage:
    conversations = await uow.conversations.list_for_user(
        principal.user_id, offset=(page - 1) * limit, limit=limit,
    )
    total = await uow.conversations.count_for_user(principal.user_id)
    items = await _summarize(conversations, principal.user_id, uow)
    return ConversationPage(items=items, page=page, limit=limit, total=total)


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationSummary:
    conversation = await load_accessible_conversation(conversation_id, principal, uow)
    [summary] = await _summarize([conversation], principal.user_id, uow)
    return summary


async def update_group_conversation(
    principal: Principal,
    conversation_id: uuid.UUID,
    name: str | None,
    image: str | None,
    uow: UnitOfWork,
) -> ConversationSummary:
    """Rename a group and/or change its image. Only the group admin may do this.

    Fields left as ``None`` keep their current value.
    """
    if name is None and not image:
        raise ValidationError("Provide name or image to update")
    if name is not None:
        name = _clean_group_name(name)

    conversation = await load_accessible_conversation(conversation_id, principal, uow)
    if conversation.kind != ConversationKind.GROUP:
        raise ValidationError("Can only update group conversations")
    if conversation.admin_id != principal.user_id:
        raise NotGroupAdmin("Only the group admin can update group details")

    conversation = await uow.conversations_w.update_details(
        conversation.id,
        name=name or conversation.name or "",
        image=image or conversation.image,
        updated_at=datetime.now(timezone.utc),
    )
    counts = await uow.read_state.counts_for_conversation(conversation.id)
    await enqueue(
        uow,
        ConversationUpdated(
            conversation_id=conversation.id,
            unread_counts=counts,
            conversation=conversation,
        ),
    )
    await uow.commit()
    logger.info("Group %s updated by %d", conversation.id, principal.user_id)

    [summary] = await _summarize([conversation], principal.user_id, uow)
    return summary


async def unread_total(principal: Principal, uow: UnitOfWork) -> UnreadTotals:
    total, conversations = await uow.read_state.totals_for_user(principal.user_id)
    return UnreadTotals(unread_count=total, conversations_with_unread=conversations)
