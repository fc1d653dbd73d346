from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from messaging_service.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_direct(self, direct_key: str) -> Conversation | None: ...

    async def list_for_user(
        self, user_id: int, *, offset: int = 0, limit: int = 20
    ) -> list[Conversation]:
        """Conversations of a user, most recent activity first."""
        ...

    async def count_for_user(self, user_id: int) -> int: ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def create_direct_if_not_exists(
        self, conversation: Conversation
    ) -> tuple[Conversation, bool]:
        """Insert a direct conversation. On ``direct_key`` conflict return the existing one."""
        ...

    async def touch_last_message_at(
        self, conversation_id: UUID, ts: datetime
    ) -> None: ...

    async def update_details(
        self,
        conversation_id: UUID,
        *,
        name: str,
        image: str | None,
        updated_at: datetime,
    ) -> Conversation: ...
