from __future__ import annotations

import uuid

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from messaging_service.api.deps import get_typing_tracker, get_uow
from messaging_service.api.v1.routers.ws import get_manager
from messaging_service.app import create_app
from messaging_service.config import settings
from tests.conftest import FakeUoW, make_conversation, seed_conversation


class RecordingTyping:
    def __init__(self) -> None:
        self.calls: list[tuple[str, uuid.UUID, int, tuple[int, ...]]] = []

    async def start(self, conversation_id, user_id, recipients) -> bool:
        self.calls.append(("start", conversation_id, user_id, tuple(recipients)))
        return True

    async def stop(self, conversation_id, user_id, recipients) -> bool:
        self.calls.append(("stop", conversation_id, user_id, tuple(recipients)))
        return True


def _token(sub: int = 42) -> str:
    return jwt.encode({"sub": str(sub)}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def uow():
    return FakeUoW()


@pytest.fixture
def typing():
    return RecordingTyping()


@pytest.fixture
def client(uow, typing):
    app = create_app()

    async def _override_uow():
        yield uow

    app.dependency_overrides[get_uow] = _override_uow
    app.dependency_overrides[get_typing_tracker] = lambda: typing
    return TestClient(app)


def test_rejects_missing_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat"):
            pass
    assert exc_info.value.code == 4001


def test_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat?token=garbage"):
            pass
    assert exc_info.value.code == 4001


def test_ping_pong_and_registration(client):
    with client.websocket_connect(f"/ws/chat?token={_token()}") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong", "data": {}}
        assert get_manager().is_connected(42)
    assert not get_manager().is_connected(42)


def test_typing_is_forwarded_to_other_members(client, uow, typing):
    conv = seed_conversation(
        uow, make_conversation(kind="group", members=(42, 7, 8), name="Team"), [42, 7, 8],
    )

    with client.websocket_connect(f"/ws/chat?token={_token()}") as ws:
        ws.send_json({"type": "typing:start", "data": {"conversation_id": str(conv.id)}})
        ws.send_json({"type": "typing:stop", "data": {"conversation_id": str(conv.id)}})
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

    assert typing.calls == [
        ("start", conv.id, 42, (7, 8)),
        ("stop", conv.id, 42, (7, 8)),
    ]
    assert uow._rollbacks == 2


def test_typing_in_foreign_conversation(client, uow, typing):
    conv = seed_conversation(uow, make_conversation(members=(7, 8)), [7, 8])

    with client.websocket_connect(f"/ws/chat?token={_token()}") as ws:
        ws.send_json({"type": "typing:start", "data": {"conversation_id": str(conv.id)}})
        frame = ws.receive_json()

    assert frame["type"] == "error"
    assert frame["data"]["code"] == "unauthorized"
    assert typing.calls == []


def test_malformed_frames(client):
    with client.websocket_connect(f"/ws/chat?token={_token()}") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "invalid_payload"

        ws.send_json({"type": "typing:start", "data": {"conversation_id": "nope"}})
        assert ws.receive_json()["data"]["code"] == "invalid_data"

        ws.send_json({"type": "dance"})
        frame = ws.receive_json()
        assert frame["data"] == {"code": "unknown_type", "type": "dance"}
