from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from messaging_service.api.v1.schemas.common import ImageUrl
from messaging_service.api.v1.schemas.message import MessageResponse
from messaging_service.application.dto.conversation import (
    ConversationPage,
    ConversationSummary,
    UnreadTotals,
)


class CreateDirectConversationRequest(BaseModel):
    participant_id: int


class CreateGroupConversationRequest(BaseModel):
    name: str
    participant_ids: list[int]
    image: ImageUrl | None = None


class UpdateGroupConversationRequest(BaseModel):
    name: str | None = None
    image: ImageUrl | None = None


class ConversationResponse(BaseModel):
    id: UUID
    kind: str
    name: str | None
    image: str | None
    admin_id: int | None
    participant_ids: list[int]
    unread_count: int
    last_message: MessageResponse | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> ConversationResponse:
        conv = summary.conversation
        return cls(
            id=conv.id,
            kind=conv.kind,
            name=conv.name,
            image=conv.image,
            admin_id=conv.admin_id,
            participant_ids=summary.participant_ids,
            unread_count=summary.unread_count,
            last_message=(
                MessageResponse.from_entity(summary.last_message)
                if summary.last_message
                else None
            ),
            last_message_at=conv.last_message_at,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
        )


class ConversationListResponse(BaseModel):
    items: list[ConversationResponse]
    page: int
    limit: int
    total: int
    has_next: bool

    @classmethod
    def from_page(cls, page: ConversationPage) -> ConversationListResponse:
        return cls(
            items=[ConversationResponse.from_summary(s) for s in page.items],
            page=page.page,
            limit=page.limit,
            total=page.total,
            has_next=page.has_next,
        )


class UnreadCountResponse(BaseModel):
    unread_count: int
    conversations_with_unread: int

    @classmethod
    def from_totals(cls, totals: UnreadTotals) -> UnreadCountResponse:
        return cls(
            unread_count=totals.unread_count,
            conversations_with_unread=totals.conversations_with_unread,
        )


class MarkSeenResponse(BaseModel):
    updated: int
    unread_count: int = 0
