from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from messaging_service.api.deps import CurrentPrincipal, UoWDep
from messaging_service.api.v1.schemas.common import ErrorResponse
from messaging_service.api.v1.schemas.conversation import (
    ConversationListResponse,
    ConversationResponse,
    CreateDirectConversationRequest,
    CreateGroupConversationRequest,
    MarkSeenResponse,
    UnreadCountResponse,
    UpdateGroupConversationRequest,
)
from messaging_service.services import conversation_service, read_state_service

router = APIRouter(
    prefix="/api/v1/conversations",
    tags=["conversations"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ConversationListResponse:
    result = await conversation_service.list_user_conversations(principal, page, limit, uow)
    return ConversationListResponse.from_page(result)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    totals = await conversation_service.unread_total(principal, uow)
    return UnreadCountResponse.from_totals(totals)


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_direct_conversation(
    body: CreateDirectConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
) -> ConversationResponse:
    conv, created = await conversation_service.create_direct_conversation(
        principal, body.participant_id, uow,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    summary = await conversation_service.get_conversation(conv.id, principal, uow)
    return ConversationResponse.from_summary(summary)


@router.post("/group", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_group_conversation(
    body: CreateGroupConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.create_group_conversation(
        principal, body.name, body.participant_ids, body.image, uow,
    )
    summary = await conversation_service.get_conversation(conv.id, principal, uow)
    return ConversationResponse.from_summary(summary)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    summary = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.from_summary(summary)


@router.put("/{conversation_id}", response_model=ConversationResponse)
async def update_group_conversation(
    conversation_id: UUID,
    body: UpdateGroupConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    summary = await conversation_service.update_group_conversation(
        principal, conversation_id, body.name, body.image, uow,
    )
    return ConversationResponse.from_summary(summary)


@router.put("/{conversation_id}/seen", response_model=MarkSeenResponse)
async def mark_seen(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MarkSeenResponse:
    updated = await read_state_service.mark_seen(conversation_id, principal, uow)
    return MarkSeenResponse(updated=updated)
