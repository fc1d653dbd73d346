from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import timedelta

import pytest

from messaging_service.application.dto.principal import Principal
from messaging_service.application.exceptions import (
    ConversationNotFound,
    EmptyMessage,
    NotAParticipant,
    ValidationError,
)
from messaging_service.domain.value_objects.enums import ConversationKind, EventType
from messaging_service.services import message_service
from tests.conftest import FakeUoW, make_conversation, seed_conversation, seed_messages


@pytest.fixture
def group_uow():
    uow = FakeUoW()
    conv = seed_conversation(
        uow, make_conversation(kind=ConversationKind.GROUP, name="g"), [42, 7, 8],
    )
    return uow, conv


@pytest.mark.asyncio
async def test_append_message_increments_other_counters(user_principal, group_uow):
    uow, conv = group_uow

    msg, created = await message_service.append_message(
        conv.id, user_principal, "  hello  ", None, uow,
    )

    assert created is True
    assert msg.content == "hello"
    assert msg.sender_id == 42
    assert msg.seq is not None
    assert uow.db.unread[(conv.id, 7)] == 1
    assert uow.db.unread[(conv.id, 8)] == 1
    assert uow.db.unread[(conv.id, 42)] == 0
    assert uow.db.conversations[conv.id].last_message_at == msg.created_at
    assert uow._committed is True


@pytest.mark.asyncio
async def test_append_message_stages_events(user_principal, group_uow):
    uow, conv = group_uow

    msg, _ = await message_service.append_message(conv.id, user_principal, "hi", None, uow)

    [new] = uow.outbox.events(EventType.MESSAGE_NEW)
    assert sorted(new["recipient_ids"]) == [7, 8, 42]
    assert new["message"]["id"] == str(msg.id)
    assert new["message"]["status"] == "delivered"

    [update] = uow.outbox.events(EventType.CONVERSATION_UPDATED)
    assert update["unread_counts"] == {"7": 1, "8": 1}
    assert update["last_message"]["content"] == "hi"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "", "   \n"])
async def test_append_empty_message_fails(user_principal, group_uow, content):
    uow, conv = group_uow

    with pytest.raises(EmptyMessage):
        await message_service.append_message(conv.id, user_principal, content, None, uow)

    assert uow.db.messages == []
    assert uow.outbox._records == []
    assert uow.db.unread[(conv.id, 7)] == 0


@pytest.mark.asyncio
async def test_append_image_only_message(user_principal, group_uow):
    uow, conv = group_uow

    msg, created = await message_service.append_message(
        conv.id, user_principal, None, "https://cdn.example.com/a.png", uow,
    )

    assert created is True
    assert msg.content is None
    assert msg.image == "https://cdn.example.com/a.png"


@pytest.mark.asyncio
async def test_append_too_long_message_fails(user_principal, group_uow):
    uow, conv = group_uow

    with pytest.raises(ValidationError):
        await message_service.append_message(conv.id, user_principal, "x" * 5001, None, uow)


@pytest.mark.asyncio
async def test_append_requires_membership(group_uow):
    uow, conv = group_uow

    with pytest.raises(NotAParticipant):
        await message_service.append_message(conv.id, Principal(user_id=99), "hi", None, uow)
    with pytest.raises(ConversationNotFound):
        await message_service.append_message(uuid.uuid4(), Principal(user_id=42), "hi", None, uow)


@pytest.mark.asyncio
async def test_append_with_client_msg_id_is_idempotent(user_principal, group_uow):
    uow, conv = group_uow
    client_msg_id = uuid.uuid4()

    msg1, created1 = await message_service.append_message(
        conv.id, user_principal, "hello", None, uow, client_msg_id=client_msg_id,
    )
    uow._committed = False
    msg2, created2 = await message_service.append_message(
        conv.id, user_principal, "hello", None, uow, client_msg_id=client_msg_id,
    )

    assert created1 is True
    assert created2 is False
    assert msg1.id == msg2.id
    assert len(uow.db.messages) == 1
    assert uow.db.unread[(conv.id, 7)] == 1
    assert len(uow.outbox.events(EventType.MESSAGE_NEW)) == 1
    assert uow._committed is False


@pytest.mark.asyncio
async def test_list_messages_pages_backwards(user_principal, group_uow):
    uow, conv = group_uow
    seeded = seed_messages(uow, conv.id, 120)

    seen = []
    cursor = None
    pages = []
    while True:
        page = await message_service.list_messages(conv.id, user_principal, cursor, 50, uow)
        pages.append(len(page.items))
        seen.extend(page.items)
        if not page.has_more:
            assert page.next_cursor is None
            break
        assert page.next_cursor == page.items[-1].id
        cursor = page.next_cursor

    assert pages == [50, 50, 20]
    assert [m.id for m in seen] == [m.id for m in reversed(seeded)]


@pytest.mark.asyncio
async def test_list_messages_unaffected_by_concurrent_appends(user_principal, group_uow):
    uow, conv = group_uow
    seeded = seed_messages(uow, conv.id, 10)

    first = await message_service.list_messages(conv.id, user_principal, None, 4, uow)
    await message_service.append_message(conv.id, Principal(user_id=7), "late", None, uow)
    second = await message_service.list_messages(
        conv.id, user_principal, first.next_cursor, 4, uow,
    )

    assert [m.id for m in first.items] == [m.id for m in seeded[9:5:-1]]
    assert [m.id for m in second.items] == [m.id for m in seeded[5:1:-1]]


@pytest.mark.asyncio
async def test_list_messages_breaks_timestamp_ties_by_seq(user_principal, group_uow):
    uow, conv = group_uow
    a, b = seed_messages(uow, conv.id, 2)
    uow.db.messages[1] = replace(b, created_at=a.created_at)

    page = await message_service.list_messages(conv.id, user_principal, None, 1, uow)
    rest = await message_service.list_messages(conv.id, user_principal, page.next_cursor, 1, uow)

    assert page.items[0].id == b.id
    assert rest.items[0].id == a.id
    assert rest.has_more is False


@pytest.mark.asyncio
async def test_list_messages_rejects_foreign_cursor(user_principal, group_uow):
    uow, conv = group_uow
    seed_messages(uow, conv.id, 3)
    other = seed_conversation(uow, make_conversation(members=(42, 9)), [42, 9])
    [foreign] = seed_messages(uow, other.id, 1, start=uow.db.messages[0].created_at + timedelta(days=1))

    with pytest.raises(ValidationError):
        await message_service.list_messages(conv.id, user_principal, foreign.id, 10, uow)
    with pytest.raises(ValidationError):
        await message_service.list_messages(conv.id, user_principal, uuid.uuid4(), 10, uow)
