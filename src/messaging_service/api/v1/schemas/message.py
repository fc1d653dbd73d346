from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from messaging_service.api.v1.schemas.common import ImageUrl
from messaging_service.application.dto.message import MessagePage
from messaging_service.domain.entities.message import Message
from messaging_service.domain.value_objects.enums import MessageStatus


class SendMessageRequest(BaseModel):
    content: str | None = None
    image: ImageUrl | None = None
    client_msg_id: UUID | None = None


class MessageResponse(BaseModel):
    id: UUID
    seq: int | None
    conversation_id: UUID
    sender_id: int | None
    type: str
    content: str | None
    image: str | None
    client_msg_id: UUID | None
    created_at: datetime
    status: MessageStatus = MessageStatus.DELIVERED
    seen_by: list[int] = []

    @classmethod
    def from_entity(cls, msg: Message) -> MessageResponse:
        return cls(
            id=msg.id,
            seq=msg.seq,
            conversation_id=msg.conversation_id,
            sender_id=msg.sender_id,
            type=msg.type,
            content=msg.content,
            image=msg.image,
            client_msg_id=msg.client_msg_id,
            created_at=msg.created_at,
            seen_by=sorted(msg.seen_by),
        )


class MessagePageResponse(BaseModel):
    items: list[MessageResponse]
    has_more: bool
    next_cursor: UUID | None

    @classmethod
    def from_page(cls, page: MessagePage) -> MessagePageResponse:
        return cls(
            items=[MessageResponse.from_entity(m) for m in page.items],
            has_more=page.has_more,
            next_cursor=page.next_cursor,
        )
