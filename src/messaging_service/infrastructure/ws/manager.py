"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import WebSocket

from messaging_service.infrastructure.ws.protocol import encode_frame

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks the live WebSocket connections of each user on this process.

    A user may hold several connections (tabs, devices); every one of them
    receives the user's events.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket, user_id: int) -> None:
        await ws.accept()
        self.register(ws, user_id)

    def register(self, ws: WebSocket, user_id: int) -> None:
        self._connections.setdefault(user_id, set()).add(ws)
        logger.debug("WS connected: user=%s (users=%d)", user_id, len(self._connections))

    def disconnect(self, ws: WebSocket, user_id: int) -> None:
        conns = self._connections.get(user_id)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[user_id]
        logger.debug("WS disconnected: user=%s", user_id)

    def is_connected(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    def connection_count(self, user_id: int | None = None) -> int:
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(c) for c in self._connections.values())

    async def send_to_user(
        self,
        user_id: int,
        event_type: str,
        data: dict[str, Any],
    ) -> int:
        """Send to every connection of ``user_id``; returns how many got it."""
        conns = self._connections.get(user_id)
        if not conns:
            return 0
        raw = encode_frame(event_type, data)
        sent = 0
        dead: list[WebSocket] = []
        for ws in list(conns):
            try:
                await ws.send_text(raw)
                sent += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws, user_id)
        return sent

    async def send_to_users(
        self,
        user_ids: Iterable[int],
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        for user_id in user_ids:
            await self.send_to_user(user_id, event_type, data)
