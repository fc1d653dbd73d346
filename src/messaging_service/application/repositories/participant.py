from __future__ import annotations

from typing import Protocol
from uuid import UUID

from messaging_service.domain.entities.participant import Participant


class ParticipantReader(Protocol):
    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool: ...

    async def list_user_ids(self, conversation_id: UUID) -> list[int]: ...

    async def list_user_ids_for(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, list[int]]: ...


class ParticipantWriter(Protocol):
    async def add_many(self, participants: list[Participant]) -> None: ...
