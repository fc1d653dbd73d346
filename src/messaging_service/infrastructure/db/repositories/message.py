from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, literal, select, tuple_
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.domain.entities.message import Message
from messaging_service.infrastructure.db.mappers import message as mapper
from messaging_service.infrastructure.db.models.message import MessageModel
from messaging_service.infrastructure.db.models.receipt import MessageReceiptModel


async def _load_seen_by(
    session: AsyncSession, message_ids: list[UUID]
) -> dict[UUID, frozenset[int]]:
    if not message_ids:
        return {}
    stmt = select(MessageReceiptModel.message_id, MessageReceiptModel.user_id).where(
        MessageReceiptModel.message_id.in_(message_ids)
    )
    result = await session.execute(stmt)
    seen: dict[UUID, set[int]] = defaultdict(set)
    for message_id, user_id in result.all():
        seen[message_id].add(user_id)
    return {mid: frozenset(users) for mid, users in seen.items()}


async def _to_entities(
    session: AsyncSession, models: list[MessageModel]
) -> list[Message]:
    seen = await _load_seen_by(session, [m.id for m in models])
    return [mapper.model_to_entity(m, seen.get(m.id, frozenset())) for m in models]


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        if model is None:
            return None
        [message] = await _to_entities(self._session, [model])
        return message

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        before: tuple[datetime, int] | None = None,
        limit: int = 50,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.seq.desc())
            .limit(limit)
        )
        if before is not None:
            stmt = stmt.where(
                tuple_(MessageModel.created_at, MessageModel.seq) < tuple_(*before)
            )
        result = await self._session.execute(stmt)
        return await _to_entities(self._session, list(result.scalars().all()))

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]:
        if not conversation_ids:
            return {}
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id.in_(conversation_ids))
            .distinct(MessageModel.conversation_id)
            .order_by(
                MessageModel.conversation_id,
                MessageModel.created_at.desc(),
                MessageModel.seq.desc(),
            )
        )
        result = await self._session.execute(stmt)
        messages = await _to_entities(self._session, list(result.scalars().all()))
        return {m.conversation_id: m for m in messages}


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.entity_to_values(message))
            .on_conflict_do_nothing(constraint="uq_message_idempotency")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: only possible with a client_msg_id
        assert message.sender_id is not None and message.client_msg_id is not None
        existing = await self.get_by_client_msg_id(
            message.conversation_id,
            message.sender_id,
            message.client_msg_id,
        )
        assert existing is not None
        return existing, False

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: int,
        client_msg_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        [message] = await _to_entities(self._session, [model])
        return message

    async def mark_seen(
        self, conversation_id: UUID, user_id: int, seen_at: datetime
    ) -> list[UUID]:
        candidates = select(
            MessageModel.id,
            literal(user_id, BigInteger),
            MessageModel.conversation_id,
            literal(seen_at, TIMESTAMP(timezone=True)),
        ).where(
            MessageModel.conversation_id == conversation_id,
            # system messages have no author and never count as unread
            MessageModel.sender_id.is_not(None),
            MessageModel.sender_id != user_id,
        )
        stmt = (
            pg_insert(MessageReceiptModel)
            .from_select(
                ["message_id", "user_id", "conversation_id", "seen_at"], candidates,
            )
            .on_conflict_do_nothing(
                index_elements=[MessageReceiptModel.message_id, MessageReceiptModel.user_id]
            )
            .returning(MessageReceiptModel.message_id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
