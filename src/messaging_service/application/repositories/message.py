from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from messaging_service.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        before: tuple[datetime, int] | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Messages strictly older than ``before`` = (created_at, seq), newest first."""
        ...

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]: ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: int,
        client_msg_id: UUID,
    ) -> Message | None: ...

    async def mark_seen(
        self, conversation_id: UUID, user_id: int, seen_at: datetime
    ) -> list[UUID]:
        """Add ``user_id`` to seen_by of every message it has not authored or seen yet.

        Returns the ids of the messages that were newly marked.
        """
        ...
