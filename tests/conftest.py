"""Shared test fixtures."""
from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from messaging_service.application.dto.principal import Principal
from messaging_service.application.repositories.outbox import OutboxRecord
from messaging_service.domain.entities.conversation import Conversation, direct_key
from messaging_service.domain.entities.message import Message
from messaging_service.domain.entities.participant import Participant
from messaging_service.domain.value_objects.enums import ConversationKind, MessageType


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id=42)


@pytest.fixture
def other_principal() -> Principal:
    return Principal(user_id=7)


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    kind: str = ConversationKind.DIRECT,
    members: tuple[int, int] = (42, 7),
    name: str | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    is_direct = kind == ConversationKind.DIRECT
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        kind=kind,
        name=name,
        image=None,
        admin_id=None if is_direct else members[0],
        direct_key=direct_key(*members) if is_direct else None,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )


def make_message(
    *,
    conversation_id: UUID | None = None,
    sender_id: int | None = 42,
    content: str | None = "hello",
    created_at: datetime | None = None,
    client_msg_id: UUID | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id or uuid.uuid4(),
        sender_id=sender_id,
        type=MessageType.TEXT,
        content=content,
        image=None,
        client_msg_id=client_msg_id,
        created_at=created_at or datetime.now(timezone.utc),
    )


@dataclass
class FakeStore:
    """Shared in-memory tables behind the fake repositories."""

    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    participants: list[Participant] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    receipts: dict[tuple[UUID, int], datetime] = field(default_factory=dict)
    unread: dict[tuple[UUID, int], int] = field(default_factory=dict)
    watermarks: dict[tuple[UUID, int], UUID | None] = field(default_factory=dict)
    seq: itertools.count = field(default_factory=lambda: itertools.count(1))

    def with_seen_by(self, message: Message) -> Message:
        seen = frozenset(uid for (mid, uid) in self.receipts if mid == message.id)
        return replace(message, seen_by=seen)

    def members(self, conversation_id: UUID) -> list[int]:
        return [p.user_id for p in self.participants if p.conversation_id == conversation_id]


@dataclass
class FakeConversationReader:
    _db: FakeStore

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._db.conversations.get(conversation_id)

    async def get_direct(self, key: str) -> Conversation | None:
        for c in self._db.conversations.values():
            if c.direct_key == key:
                return c
        return None

    async def list_for_user(self, user_id: int, *, offset: int = 0, limit: int = 20) -> list[Conversation]:
        mine = [
            c for c in self._db.conversations.values()
            if user_id in self._db.members(c.id)
        ]
        mine.sort(key=lambda c: (c.last_activity_at, str(c.id)), reverse=True)
        return mine[offset:offset + limit]

    async def count_for_user(self, user_id: int) -> int:
        return sum(1 for p in self._db.participants if p.user_id == user_id)


@dataclass
class FakeConversationWriter:
    _db: FakeStore

    async def create(self, conversation: Conversation) -> Conversation:
        self._db.conversations[conversation.id] = conversation
        return conversation

    async def create_direct_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        for c in self._db.conversations.values():
            if c.direct_key == conversation.direct_key:
                return c, False
        self._db.conversations[conversation.id] = conversation
        return conversation, True

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        conv = self._db.conversations[conversation_id]
        self._db.conversations[conversation_id] = replace(conv, last_message_at=ts)

    async def update_details(
        self, conversation_id: UUID, *, name: str, image: str | None, updated_at: datetime,
    ) -> Conversation:
        conv = replace(
            self._db.conversations[conversation_id], name=name, image=image, updated_at=updated_at,
        )
        self._db.conversations[conversation_id] = conv
        return conv


@dataclass
class FakeParticipantReader:
    _db: FakeStore

    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool:
        return user_id in self._db.members(conversation_id)

    async def list_user_ids(self, conversation_id: UUID) -> list[int]:
        return self._db.members(conversation_id)

    async def list_user_ids_for(self, conversation_ids: list[UUID]) -> dict[UUID, list[int]]:
        return {cid: self._db.members(cid) for cid in conversation_ids}


@dataclass
class FakeParticipantWriter:
    _db: FakeStore

    async def add_many(self, participants: list[Participant]) -> None:
        self._db.participants.extend(participants)


@dataclass
class FakeMessageReader:
    _db: FakeStore

    async def get_by_id(self, message_id: UUID) -> Message | None:
        for m in self._db.messages:
            if m.id == message_id:
                return self._db.with_seen_by(m)
        return None

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        before: tuple[datetime, int] | None = None,
        limit: int = 50,
    ) -> list[Message]:
        rows = [
            m for m in self._db.messages
            if m.conversation_id == conversation_id
            and (before is None or m.sort_key < before)
        ]
        rows.sort(key=lambda m: m.sort_key, reverse=True)
        return [self._db.with_seen_by(m) for m in rows[:limit]]

    async def latest_for_conversations(self, conversation_ids: list[UUID]) -> dict[UUID, Message]:
        latest: dict[UUID, Message] = {}
        for m in self._db.messages:
            if m.conversation_id not in conversation_ids:
                continue
            current = latest.get(m.conversation_id)
            if current is None or m.sort_key > current.sort_key:
                latest[m.conversation_id] = m
        return {cid: self._db.with_seen_by(m) for cid, m in latest.items()}


@dataclass
class FakeMessageWriter:
    _db: FakeStore

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        if message.client_msg_id is not None:
            existing = await self.get_by_client_msg_id(
                message.conversation_id, message.sender_id, message.client_msg_id,
            )
            if existing is not None:
                return existing, False
        stored = replace(message, seq=next(self._db.seq))
        self._db.messages.append(stored)
        return stored, True

    async def get_by_client_msg_id(
        self, conversation_id: UUID, sender_id: int | None, client_msg_id: UUID,
    ) -> Message | None:
        for m in self._db.messages:
            if (
                m.conversation_id == conversation_id
                and m.sender_id == sender_id
                and m.client_msg_id == client_msg_id
            ):
                return self._db.with_seen_by(m)
        return None

    async def mark_seen(self, conversation_id: UUID, user_id: int, seen_at: datetime) -> list[UUID]:
        newly: list[UUID] = []
        for m in self._db.messages:
            if m.conversation_id != conversation_id or m.sender_id in (None, user_id):
                continue
            if (m.id, user_id) in self._db.receipts:
                continue
            self._db.receipts[(m.id, user_id)] = seen_at
            newly.append(m.id)
        return newly


@dataclass
class FakeReadStateReader:
    _db: FakeStore

    async def unread_counts(self, user_id: int, conversation_ids: list[UUID]) -> dict[UUID, int]:
        return {
            cid: n for (cid, uid), n in self._db.unread.items()
            if uid == user_id and cid in conversation_ids
        }

    async def totals_for_user(self, user_id: int) -> tuple[int, int]:
        counts = [n for (_, uid), n in self._db.unread.items() if uid == user_id]
        return sum(counts), sum(1 for n in counts if n > 0)

    async def counts_for_conversation(self, conversation_id: UUID) -> dict[int, int]:
        return {uid: n for (cid, uid), n in self._db.unread.items() if cid == conversation_id}


@dataclass
class FakeReadStateWriter:
    _db: FakeStore

    async def create_many(self, conversation_id: UUID, user_ids: list[int]) -> None:
        for uid in user_ids:
            self._db.unread.setdefault((conversation_id, uid), 0)

    async def increment_unread(self, conversation_id: UUID, exclude_user_id: int | None) -> dict[int, int]:
        updated: dict[int, int] = {}
        for (cid, uid), n in list(self._db.unread.items()):
            if cid == conversation_id and uid != exclude_user_id:
                self._db.unread[(cid, uid)] = n + 1
                updated[uid] = n + 1
        return updated

    async def reset_unread(
        self, conversation_id: UUID, user_id: int, last_seen_message_id: UUID | None, seen_at: datetime,
    ) -> None:
        self._db.unread[(conversation_id, user_id)] = 0
        self._db.watermarks[(conversation_id, user_id)] = last_seen_message_id


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    pending: list[OutboxRecord] = field(default_factory=list)
    sent: list[int] = field(default_factory=list)
    failed: dict[int, datetime] = field(default_factory=dict)
    dead: list[int] = field(default_factory=list)
    errors: dict[int, str | None] = field(default_factory=dict)
    published_at: dict[int, datetime] = field(default_factory=dict)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "payload": payload})

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        batch, self.pending = self.pending[:batch_size], self.pending[batch_size:]
        return batch

    async def mark_sent(self, ids: list[int]) -> None:
        self.sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str) -> None:
        self.failed[record_id] = next_retry_at
        self.errors[record_id] = error

    async def mark_dead(self, record_id: int, error: str | None) -> None:
        self.dead.append(record_id)
        self.errors[record_id] = error

    async def purge_sent(self, before: datetime) -> int:
        old = [rid for rid, ts in self.published_at.items() if ts < before]
        for rid in old:
            del self.published_at[rid]
        return len(old)

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [r["payload"] for r in self._records if r["event_type"] == event_type]


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    db: FakeStore = field(default_factory=FakeStore)
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False
    _rollbacks: int = 0

    def __post_init__(self) -> None:
        self.conversations = FakeConversationReader(self.db)
        self.conversations_w = FakeConversationWriter(self.db)
        self.participants = FakeParticipantReader(self.db)
        self.participants_w = FakeParticipantWriter(self.db)
        self.messages = FakeMessageReader(self.db)
        self.messages_w = FakeMessageWriter(self.db)
        self.read_state = FakeReadStateReader(self.db)
        self.read_state_w = FakeReadStateWriter(self.db)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._rollbacks += 1


def seed_conversation(uow: FakeUoW, conversation: Conversation, members: list[int]) -> Conversation:
    """Store a conversation with participants and zeroed counters."""
    uow.db.conversations[conversation.id] = conversation
    for uid in members:
        uow.db.participants.append(
            Participant(conversation_id=conversation.id, user_id=uid, joined_at=conversation.created_at)
        )
        uow.db.unread[(conversation.id, uid)] = 0
    return conversation


def seed_messages(
    uow: FakeUoW,
    conversation_id: UUID,
    count: int,
    *,
    sender_id: int = 7,
    start: datetime | None = None,
) -> list[Message]:
    """Append ``count`` messages one second apart, oldest first."""
    start = start or datetime(2020, 1, 1, tzinfo=timezone.utc)
    stored = []
    for i in range(count):
        msg = replace(
            make_message(
                conversation_id=conversation_id,
                sender_id=sender_id,
                content=f"m{i}",
                created_at=start + timedelta(seconds=i),
            ),
            seq=next(uow.db.seq),
        )
        uow.db.messages.append(msg)
        stored.append(msg)
    return stored


class FakePublisher:
    """Records published payloads; raises for the first ``fail_times`` calls."""

    def __init__(self, fail_times: int = 0) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []
        self._fail_times = fail_times

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        if self._fail_times > 0:
            self._fail_times -= 1
            raise ConnectionError("redis down")
        self.published.append((channel, payload))

    def event_types(self) -> list[str]:
        return [p["event_type"] for _, p in self.published]
