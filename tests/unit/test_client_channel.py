from __future__ import annotations

import json
from types import SimpleNamespace

import aiohttp
import pytest

from messaging_service.client.channel import ChannelConnection, ChannelState, backoff_delay
from messaging_service.client.errors import ChannelConnectionError


def text(payload) -> SimpleNamespace:
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=raw)


class FakeWebSocket:
    def __init__(self, frames, close_code: int = 1000) -> None:
        self._frames = list(frames)
        self.close_code = close_code
        self.closed = False
        self.sent: list[str] = []

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._frames:
            self.closed = True
            raise StopAsyncIteration
        return self._frames.pop(0)

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True


class FakeHttp:
    """Hands out the queued sockets, then refuses every connection."""

    def __init__(self, *sockets: FakeWebSocket) -> None:
        self._sockets = list(sockets)
        self.connects: list[dict] = []

    async def ws_connect(self, url, params=None):
        self.connects.append({"url": url, "params": params})
        if not self._sockets:
            raise aiohttp.ClientConnectionError("connection refused")
        return self._sockets.pop(0)


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []
        self.states: list[ChannelState] = []
        self.sleeps: list[float] = []

    async def on_event(self, event_type, data) -> None:
        self.events.append((event_type, data))

    async def on_state(self, state) -> None:
        self.states.append(state)

    async def sleep(self, delay) -> None:
        self.sleeps.append(delay)


def make_channel(http: FakeHttp, rec: Recorder, attempts: int = 5) -> ChannelConnection:
    return ChannelConnection(
        "ws://chat.test/ws/chat",
        "tok",
        rec.on_event,
        on_state=rec.on_state,
        attempts=attempts,
        base_delay=1.0,
        max_delay=5.0,
        http=http,
        sleep=rec.sleep,
    )


def test_backoff_doubles_and_caps():
    assert [backoff_delay(n, 1.0, 5.0) for n in range(1, 6)] == [1, 2, 4, 5, 5]


@pytest.mark.asyncio
async def test_gives_up_after_configured_attempts():
    http, rec = FakeHttp(), Recorder()
    channel = make_channel(http, rec)

    await channel.start()
    await channel.task

    assert len(http.connects) == 5
    assert http.connects[0]["params"] == {"token": "tok"}
    assert rec.sleeps == [1, 2, 4, 5]
    assert rec.states == [
        ChannelState.CONNECTING,
        ChannelState.RECONNECTING,
        ChannelState.DISCONNECTED,
    ]
    assert channel.state == ChannelState.DISCONNECTED


@pytest.mark.asyncio
async def test_dispatches_frames_and_stops_on_auth_failure():
    ws = FakeWebSocket(
        [
            text({"type": "pong"}),
            text("not json"),
            text({"type": "message:new", "data": {"message": {"id": "m1"}}}),
        ],
        close_code=4001,
    )
    http, rec = FakeHttp(ws), Recorder()
    channel = make_channel(http, rec)

    await channel.start()
    await channel.task

    assert rec.events == [("message:new", {"message": {"id": "m1"}})]
    assert rec.states == [
        ChannelState.CONNECTING,
        ChannelState.CONNECTED,
        ChannelState.DISCONNECTED,
    ]
    assert len(http.connects) == 1


@pytest.mark.asyncio
async def test_reconnects_after_server_close():
    first = FakeWebSocket([text({"type": "typing:start", "data": {}})])
    second = FakeWebSocket([], close_code=4001)
    http, rec = FakeHttp(first, second), Recorder()
    channel = make_channel(http, rec)

    await channel.start()
    await channel.task

    assert len(http.connects) == 2
    assert rec.sleeps == [1]
    assert rec.states == [
        ChannelState.CONNECTING,
        ChannelState.CONNECTED,
        ChannelState.RECONNECTING,
        ChannelState.CONNECTED,
        ChannelState.DISCONNECTED,
    ]


@pytest.mark.asyncio
async def test_connections_dropped_before_any_frame_count_as_failures():
    sockets = [FakeWebSocket([]) for _ in range(5)]
    http, rec = FakeHttp(*sockets), Recorder()
    channel = make_channel(http, rec)

    await channel.start()
    await channel.task

    assert len(http.connects) == 5
    assert rec.sleeps == [1, 2, 4, 5]
    assert rec.states[-1] == ChannelState.DISCONNECTED
    assert channel.state == ChannelState.DISCONNECTED


@pytest.mark.asyncio
async def test_a_received_frame_resets_the_failure_count():
    sockets = [FakeWebSocket([]), FakeWebSocket([text({"type": "pong"})]), FakeWebSocket([])]
    http, rec = FakeHttp(*sockets), Recorder()
    channel = make_channel(http, rec, attempts=2)

    await channel.start()
    await channel.task

    # silent, healthy, silent, then one refused connect exhausts the two attempts
    assert len(http.connects) == 4
    assert rec.sleeps == [1, 1, 1]
    assert channel.state == ChannelState.DISCONNECTED


@pytest.mark.asyncio
async def test_handler_errors_do_not_stop_the_channel():
    ws = FakeWebSocket(
        [text({"type": "message:new", "data": {}}), text({"type": "message:seen", "data": {}})],
        close_code=4001,
    )
    http, rec = FakeHttp(ws), Recorder()
    seen = []

    async def flaky(event_type, data):
        seen.append(event_type)
        if event_type == "message:new":
            raise RuntimeError("handler bug")

    channel = ChannelConnection("ws://chat.test/ws/chat", "tok", flaky, http=http, sleep=rec.sleep)
    await channel.start()
    await channel.task

    assert seen == ["message:new", "message:seen"]


@pytest.mark.asyncio
async def test_send_requires_connection():
    channel = make_channel(FakeHttp(), Recorder())

    with pytest.raises(ChannelConnectionError):
        await channel.send("typing:start", {"conversation_id": "c"})


@pytest.mark.asyncio
async def test_close_resets_state():
    http, rec = FakeHttp(), Recorder()
    channel = make_channel(http, rec, attempts=1)
    await channel.start()
    await channel.task

    await channel.close()

    assert channel.state == ChannelState.IDLE
    assert channel.task is None
