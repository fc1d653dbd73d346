from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from messaging_service.api.deps import CurrentPrincipal, UoWDep
from messaging_service.api.v1.schemas.common import ErrorResponse
from messaging_service.api.v1.schemas.message import (
    MessagePageResponse,
    MessageResponse,
    SendMessageRequest,
)
from messaging_service.services import message_service

router = APIRouter(
    prefix="/api/v1/conversations",
    tags=["messages"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    cursor: UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
) -> MessagePageResponse:
    page = await message_service.list_messages(
        conversation_id, principal, cursor, limit, uow,
    )
    return MessagePageResponse.from_page(page)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
) -> MessageResponse:
    msg, created = await message_service.append_message(
        conversation_id,
        principal,
        body.content,
        body.image,
        uow,
        client_msg_id=body.client_msg_id,
    )
    if not created:
        # replayed client_msg_id
        response.status_code = status.HTTP_200_OK
    return MessageResponse.from_entity(msg)
