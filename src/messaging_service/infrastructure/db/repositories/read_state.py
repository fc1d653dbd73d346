from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.infrastructure.db.models.read_state import ReadStateModel


class ReadStateReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def unread_counts(
        self, user_id: int, conversation_ids: list[UUID]
    ) -> dict[UUID, int]:
        if not conversation_ids:
            return {}
        stmt = select(ReadStateModel.conversation_id, ReadStateModel.unread_count).where(
            ReadStateModel.user_id == user_id,
            ReadStateModel.conversation_id.in_(conversation_ids),
        )
        result = await self._session.execute(stmt)
        return {cid: count for cid, count in result.all()}

    async def totals_for_user(self, user_id: int) -> tuple[int, int]:
        stmt = select(
            func.coalesce(func.sum(ReadStateModel.unread_count), 0),
            func.count().filter(ReadStateModel.unread_count > 0),
        ).where(ReadStateModel.user_id == user_id)
        result = await self._session.execute(stmt)
        total, conversations = result.one()
        return int(total), int(conversations)

    async def counts_for_conversation(self, conversation_id: UUID) -> dict[int, int]:
        stmt = select(ReadStateModel.user_id, ReadStateModel.unread_count).where(
            ReadStateModel.conversation_id == conversation_id,
        )
        result = await self._session.execute(stmt)
        return {uid: count for uid, count in result.all()}


class ReadStateWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_many(self, conversation_id: UUID, user_ids: list[int]) -> None:
        if not user_ids:
            return
        stmt = (
            pg_insert(ReadStateModel)
            .values([{"conversation_id": conversation_id, "user_id": uid} for uid in user_ids])
            .on_conflict_do_nothing(index_elements=["conversation_id", "user_id"])
        )
        await self._session.execute(stmt)

    async def increment_unread(
        self, conversation_id: UUID, exclude_user_id: int | None
    ) -> dict[int, int]:
        stmt = (
            update(ReadStateModel)
            .where(ReadStateModel.conversation_id == conversation_id)
            .values(unread_count=ReadStateModel.unread_count + 1)
            .returning(ReadStateModel.user_id, ReadStateModel.unread_count)
            .execution_options(synchronize_session=False)
        )
        if exclude_user_id is not None:
            stmt = stmt.where(ReadStateModel.user_id != exclude_user_id)
        result = await self._session.execute(stmt)
        return {user_id: count for user_id, count in result.all()}

    async def reset_unread(
        self,
        conversation_id: UUID,
        user_id: int,
        last_seen_message_id: UUID | None,
        seen_at: datetime,
    ) -> None:
        stmt = (
            update(ReadStateModel)
            .where(
                ReadStateModel.conversation_id == conversation_id,
                ReadStateModel.user_id == user_id,
            )
            .values(
                unread_count=0,
                last_seen_message_id=last_seen_message_id,
                last_seen_at=seen_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
