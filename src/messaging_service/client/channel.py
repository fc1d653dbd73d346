"""Push channel client over aiohttp WebSockets with bounded reconnection."""
from __future__ import annotations

import asyncio
import json
import logging
from enum import StrEnum
from typing import Any, Awaitable, Callable

import aiohttp

from messaging_service.client.errors import ChannelConnectionError
from messaging_service.infrastructure.ws.protocol import AUTH_FAILED_CLOSE_CODE, PONG

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]
StateHandler = Callable[["ChannelState"], Awaitable[None]]


class ChannelState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before reconnect ``attempt`` (1-based): base, 2*base, 4*base, ... capped."""
    return min(base * 2 ** (attempt - 1), maximum)


class ChannelConnection:
    def __init__(
        self,
        url: str,
        token: str,
        on_event: EventHandler,
        *,
        on_state: StateHandler | None = None,
        attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        http: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._token = token
        self._on_event = on_event
        self._on_state = on_state
        self._attempts = attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._http = http
        self._owns_http = http is None
        self._sleep = sleep
        self._state = ChannelState.IDLE
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if self._http is None:
            self._http = aiohttp.ClientSession()
        self._closing = False
        self._task = asyncio.create_task(self._run(), name="messaging-channel")

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_http and self._http is not None:
            await self._http.close()
            self._http = None
        await self._set_state(ChannelState.IDLE)

    async def send(self, event_type: str, data: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise ChannelConnectionError("Channel is not connected")
        try:
            await ws.send_str(json.dumps({"type": event_type, "data": data}))
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise ChannelConnectionError(str(exc)) from exc

    async def _run(self) -> None:
        failures = 0
        reconnecting = False
        while not self._closing:
            await self._set_state(
                ChannelState.RECONNECTING if reconnecting else ChannelState.CONNECTING
            )
            try:
                ws = await self._connect()
            except ChannelConnectionError as exc:
                failures += 1
                if failures >= self._attempts:
                    logger.warning("Channel gave up after %d attempts: %s", failures, exc)
                    await self._set_state(ChannelState.DISCONNECTED)
                    return
                reconnecting = True
                await self._sleep(backoff_delay(failures, self._base_delay, self._max_delay))
                continue

            self._ws = ws
            await self._set_state(ChannelState.CONNECTED)
            try:
                received = await self._read(ws)
            finally:
                self._ws = None

            if self._closing:
                return
            if ws.close_code == AUTH_FAILED_CLOSE_CODE:
                logger.warning("Channel rejected the token")
                await self._set_state(ChannelState.DISCONNECTED)
                return
            # dropped before the first frame: counts as a failed attempt
            failures = 0 if received else failures + 1
            if failures >= self._attempts:
                logger.warning("Channel gave up after %d dropped connections", failures)
                await self._set_state(ChannelState.DISCONNECTED)
                return
            reconnecting = True
            await self._set_state(ChannelState.RECONNECTING)
            await self._sleep(backoff_delay(max(failures, 1), self._base_delay, self._max_delay))

    async def _connect(self) -> aiohttp.ClientWebSocketResponse:
        assert self._http is not None
        try:
            return await self._http.ws_connect(self._url, params={"token": self._token})
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise ChannelConnectionError(f"Cannot connect to {self._url}: {exc}") from exc

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> bool:
        """Pump frames until the socket closes. Returns whether any frame arrived."""
        received = False
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                received = True
                await self._dispatch(msg.data)
            elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSE):
                break
        return received

    async def _dispatch(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("Dropping malformed frame")
            return
        event_type = frame.get("type")
        if not event_type or event_type == PONG:
            return
        try:
            await self._on_event(event_type, frame.get("data") or {})
        except Exception:
            logger.exception("Channel handler failed for %s", event_type)

    async def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        self._state = state
        logger.debug("Channel state -> %s", state)
        if self._on_state is not None:
            await self._on_state(state)
