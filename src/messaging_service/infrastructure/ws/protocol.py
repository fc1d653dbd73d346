"""WebSocket frames: ``{"type": ..., "data": {...}}`` in both directions."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel

PING = "ping"
PONG = "pong"
ERROR = "error"

AUTH_FAILED_CLOSE_CODE = 4001


class WsInbound(BaseModel):
    """Client → Server: ping | typing:start | typing:stop."""

    type: str
    data: dict[str, Any] = {}


class TypingData(BaseModel):
    conversation_id: UUID


class WsOutbound(BaseModel):
    """Server → Client: pushed events, pong and error frames."""

    type: str
    data: dict[str, Any] = {}


def encode_frame(event_type: str, data: dict[str, Any] | None = None) -> str:
    return WsOutbound(type=str(event_type), data=data or {}).model_dump_json()
