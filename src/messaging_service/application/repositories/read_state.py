from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID


class ReadStateReader(Protocol):
    async def unread_counts(
        self, user_id: int, conversation_ids: list[UUID]
    ) -> dict[UUID, int]: ...

    async def totals_for_user(self, user_id: int) -> tuple[int, int]:
        """Return (sum of unread counters, number of conversations with unread)."""
        ...

    async def counts_for_conversation(self, conversation_id: UUID) -> dict[int, int]:
        """Current counter of every participant."""
        ...


class ReadStateWriter(Protocol):
    async def create_many(self, conversation_id: UUID, user_ids: list[int]) -> None: ...

    async def increment_unread(
        self, conversation_id: UUID, exclude_user_id: int | None
    ) -> dict[int, int]:
        """Atomically add 1 to every counter of the conversation but the sender's.

        Returns the new counter per user.
        """
        ...

    async def reset_unread(
        self,
        conversation_id: UUID,
        user_id: int,
        last_seen_message_id: UUID | None,
        seen_at: datetime,
    ) -> None: ...
