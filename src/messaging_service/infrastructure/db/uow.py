from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from messaging_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from messaging_service.infrastructure.db.repositories.outbox import OutboxWriterRepo
from messaging_service.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from messaging_service.infrastructure.db.repositories.read_state import (
    ReadStateReaderRepo,
    ReadStateWriterRepo,
)


class SqlAlchemyUoW:
    """Unit of work over one AsyncSession.

    Used as an async context manager it owns the session: uncommitted work
    is rolled back and the connection returned to the pool on exit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.read_state = ReadStateReaderRepo(session)
        self.read_state_w = ReadStateWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._session.in_transaction():
                await self.rollback()
        finally:
            await self._session.close()
