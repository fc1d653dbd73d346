from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.domain.entities.participant import Participant
from messaging_service.infrastructure.db.mappers import participant as mapper
from messaging_service.infrastructure.db.models.participant import ParticipantModel


class ParticipantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool:
        stmt = (
            select(ParticipantModel.user_id)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_user_ids(self, conversation_id: UUID) -> list[int]:
        stmt = (
            select(ParticipantModel.user_id)
            .where(ParticipantModel.conversation_id == conversation_id)
            .order_by(ParticipantModel.joined_at, ParticipantModel.user_id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_user_ids_for(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, list[int]]:
        if not conversation_ids:
            return {}
        stmt = (
            select(ParticipantModel.conversation_id, ParticipantModel.user_id)
            .where(ParticipantModel.conversation_id.in_(conversation_ids))
            .order_by(ParticipantModel.joined_at, ParticipantModel.user_id)
        )
        result = await self._session.execute(stmt)
        members: dict[UUID, list[int]] = defaultdict(list)
        for conversation_id, user_id in result.all():
            members[conversation_id].append(user_id)
        return dict(members)


class ParticipantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, participants: list[Participant]) -> None:
        """Insert memberships; existing ones are left untouched."""
        if not participants:
            return
        stmt = (
            pg_insert(ParticipantModel)
            .values([mapper.entity_to_values(p) for p in participants])
            .on_conflict_do_nothing(index_elements=["conversation_id", "user_id"])
        )
        await self._session.execute(stmt)
