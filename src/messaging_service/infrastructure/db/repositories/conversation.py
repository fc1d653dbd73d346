from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.domain.entities.conversation import Conversation
from messaging_service.infrastructure.db.mappers import conversation as mapper
from messaging_service.infrastructure.db.models.conversation import ConversationModel
from messaging_service.infrastructure.db.models.participant import ParticipantModel

_last_activity = func.coalesce(ConversationModel.last_message_at, ConversationModel.created_at)


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_direct(self, direct_key: str) -> Conversation | None:
        stmt = select(ConversationModel).where(ConversationModel.direct_key == direct_key)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(
        self,
        user_id: int,
        *,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .join(
                ParticipantModel,
                ParticipantModel.conversation_id == ConversationModel.id,
            )
            .where(ParticipantModel.user_id == user_id)
            .order_by(_last_activity.desc(), ConversationModel.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_for_user(self, user_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(ParticipantModel)
            .where(ParticipantModel.user_id == user_id)
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def create_direct_if_not_exists(
        self, conversation: Conversation
    ) -> tuple[Conversation, bool]:
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.entity_to_values(conversation))
            .on_conflict_do_nothing(index_elements=[ConversationModel.direct_key])
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        existing = await ConversationReaderRepo(self._session).get_direct(
            conversation.direct_key or ""
        )
        assert existing is not None
        return existing, False

    async def touch_last_message_at(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)

    async def update_details(
        self,
        conversation_id: UUID,
        *,
        name: str,
        image: str | None,
        updated_at: datetime,
    ) -> Conversation:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(name=name, image=image, updated_at=updated_at)
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())
