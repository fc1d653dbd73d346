"""Client-side views of server resources."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from messaging_service.domain.value_objects.enums import MessageStatus

TEMP_ID_PREFIX = "temp-"


class ClientMessage(BaseModel):
    # server UUID, or "temp-<client_msg_id>" until confirmed
    id: str
    conversation_id: UUID
    sender_id: int | None = None
    type: str = "text"
    content: str | None = None
    image: str | None = None
    created_at: datetime
    seq: int | None = None
    client_msg_id: UUID | None = None
    status: MessageStatus = MessageStatus.DELIVERED
    seen_by: list[int] = []

    @property
    def is_pending(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return self.created_at, self.seq or 0


class ConversationEntry(BaseModel):
    id: UUID
    kind: str
    name: str | None = None
    image: str | None = None
    admin_id: int | None = None
    participant_ids: list[int] = []
    unread_count: int = 0
    last_message: ClientMessage | None = None
    last_message_at: datetime | None = None
    created_at: datetime

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message_at is None:
            return self.created_at
        return max(self.created_at, self.last_message_at)


class MessagePageData(BaseModel):
    items: list[ClientMessage]
    has_more: bool
    next_cursor: UUID | None = None


class ConversationListData(BaseModel):
    items: list[ConversationEntry]
    page: int
    limit: int
    total: int
    has_next: bool


class UnreadCountData(BaseModel):
    unread_count: int
    conversations_with_unread: int
