from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from messaging_service.api.deps import TypingDep, UoWDep, get_verifier
from messaging_service.application.dto.principal import Principal
from messaging_service.application.exceptions import AppError
from messaging_service.application.ports.auth import InvalidToken
from messaging_service.application.policies.permissions import load_accessible_conversation
from messaging_service.application.uow import UnitOfWork
from messaging_service.config import settings
from messaging_service.domain.value_objects.enums import EventType
from messaging_service.infrastructure.ws.manager import ConnectionManager
from messaging_service.infrastructure.ws.protocol import (
    AUTH_FAILED_CLOSE_CODE,
    ERROR,
    PING,
    PONG,
    TypingData,
    WsInbound,
    encode_frame,
)
from messaging_service.services.typing_service import TypingTracker

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await get_verifier().verify(token)
    except InvalidToken as exc:
        logger.info("WS auth rejected: %s", exc)
        return None


def _frame(event_type: str, **data: object) -> str:
    return encode_frame(event_type, data)


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    uow: UoWDep,
    typing: TypingDep,
    token: str | None = Query(None),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    user_id = principal.user_id
    await manager.connect(websocket, user_id)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{user_id}",
    )
    try:
        await _read_loop(websocket, principal, uow, typing)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user=%s", user_id)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, user_id)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(_frame(PONG))
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _read_loop(
    ws: WebSocket,
    principal: Principal,
    uow: UnitOfWork,
    typing: TypingTracker,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await ws.send_text(_frame(ERROR, code="invalid_payload"))
            continue

        if msg.type == PING:
            await ws.send_text(_frame(PONG))

        elif msg.type in (EventType.TYPING_START, EventType.TYPING_STOP):
            await _handle_typing(ws, principal, msg, uow, typing)

        else:
            await ws.send_text(_frame(ERROR, code="unknown_type", type=msg.type))


async def _handle_typing(
    ws: WebSocket,
    principal: Principal,
    msg: WsInbound,
    uow: UnitOfWork,
    typing: TypingTracker,
) -> None:
    try:
        data = TypingData.model_validate(msg.data)
    except PydanticValidationError as exc:
        await ws.send_text(_frame(ERROR, code="invalid_data", detail=str(exc)))
        return

    try:
        await load_accessible_conversation(data.conversation_id, principal, uow)
        participant_ids = await uow.participants.list_user_ids(data.conversation_id)
    except AppError as exc:
        await ws.send_text(_frame(ERROR, code=exc.code, detail=exc.detail))
        return
    finally:
        # release the connection between frames
        await uow.rollback()

    recipients = tuple(p for p in participant_ids if p != principal.user_id)
    if msg.type == EventType.TYPING_START:
        await typing.start(data.conversation_id, principal.user_id, recipients)
    else:
        await typing.stop(data.conversation_id, principal.user_id, recipients)
