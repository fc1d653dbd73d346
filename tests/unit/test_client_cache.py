from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from messaging_service.client.cache import ConversationListCache, MessageTimeline, TypingIndicators
from messaging_service.client.models import ClientMessage, ConversationEntry, MessagePageData
from messaging_service.domain.value_objects.enums import MessageStatus

BASE = datetime(2026, 3, 1, tzinfo=timezone.utc)


def server_message(
    conversation_id: uuid.UUID,
    *,
    seq: int,
    sender_id: int = 7,
    client_msg_id: uuid.UUID | None = None,
    content: str = "hi",
) -> ClientMessage:
    return ClientMessage(
        id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        created_at=BASE + timedelta(seconds=seq),
        seq=seq,
        client_msg_id=client_msg_id,
    )


def conversation(unread: int = 0) -> ConversationEntry:
    return ConversationEntry(id=uuid.uuid4(), kind="direct", unread_count=unread, created_at=BASE)


class TestMessageTimeline:
    def test_ack_before_push_leaves_one_entry(self):
        tl = MessageTimeline(uuid.uuid4())
        pending = tl.add_pending(42, "hello")
        confirmed = server_message(tl.conversation_id, seq=1, sender_id=42, client_msg_id=pending.client_msg_id)

        tl.confirm(pending.client_msg_id, confirmed)
        assert tl.apply_new_message(confirmed) is False

        [entry] = tl.entries()
        assert entry.id == confirmed.id
        assert entry.status == MessageStatus.DELIVERED

    def test_push_before_ack_leaves_one_entry(self):
        tl = MessageTimeline(uuid.uuid4())
        pending = tl.add_pending(42, "hello")
        confirmed = server_message(tl.conversation_id, seq=1, sender_id=42, client_msg_id=pending.client_msg_id)

        assert tl.apply_new_message(confirmed) is True
        tl.confirm(pending.client_msg_id, confirmed)

        [entry] = tl.entries()
        assert entry.id == confirmed.id
        assert tl.pending(pending.client_msg_id) is None

    def test_pending_entry_uses_temp_id(self):
        tl = MessageTimeline(uuid.uuid4())

        entry = tl.add_pending(42, "hello")

        assert entry.id == f"temp-{entry.client_msg_id}"
        assert entry.is_pending
        assert entry.status == MessageStatus.SENDING

    def test_fail_retry_discard(self):
        tl = MessageTimeline(uuid.uuid4())
        entry = tl.add_pending(42, "hello")
        cmid = entry.client_msg_id

        assert tl.retry(cmid) is None  # only failed entries can be retried
        tl.fail(cmid)
        assert tl.pending(cmid).status == MessageStatus.FAILED
        assert len(tl) == 1

        retried = tl.retry(cmid)
        assert retried.status == MessageStatus.SENDING
        assert retried.client_msg_id == cmid
        assert retried.content == "hello"

        assert tl.discard(cmid) is False
        tl.fail(cmid)
        assert tl.discard(cmid) is True
        assert tl.entries() == []

    def test_entries_are_newest_first_with_pending_on_top(self):
        tl = MessageTimeline(uuid.uuid4())
        old = server_message(tl.conversation_id, seq=1)
        new = server_message(tl.conversation_id, seq=2)
        tl.apply_new_message(new)
        tl.apply_new_message(old)
        pending = tl.add_pending(42, "draft")

        assert [m.id for m in tl.entries()] == [pending.id, new.id, old.id]

    def test_apply_page_dedupes_and_tracks_cursor(self):
        tl = MessageTimeline(uuid.uuid4())
        cid = tl.conversation_id
        newest = [server_message(cid, seq=s) for s in (10, 9)]
        older = [server_message(cid, seq=s) for s in (8, 7)]

        tl.apply_page(MessagePageData(items=newest, has_more=True, next_cursor=uuid.UUID(newest[-1].id)), initial=True)
        tl.apply_page(MessagePageData(items=older, has_more=False, next_cursor=None))
        # a refresh of the newest page must not rewind the cursor
        tl.apply_page(MessagePageData(items=newest, has_more=True, next_cursor=uuid.UUID(newest[-1].id)), initial=True)

        assert len(tl) == 4
        assert tl.has_more is False
        assert tl.next_cursor is None

    def test_page_resolves_pending_entries(self):
        tl = MessageTimeline(uuid.uuid4())
        pending = tl.add_pending(42, "hello")
        confirmed = server_message(tl.conversation_id, seq=1, sender_id=42, client_msg_id=pending.client_msg_id)

        tl.apply_page(MessagePageData(items=[confirmed], has_more=False), initial=True)

        assert [m.id for m in tl.entries()] == [confirmed.id]

    def test_apply_seen(self):
        tl = MessageTimeline(uuid.uuid4())
        msg = server_message(tl.conversation_id, seq=1, sender_id=42)
        tl.apply_new_message(msg)

        assert tl.apply_seen([msg.id], 7) == 1
        assert tl.apply_seen([msg.id], 7) == 0
        assert tl.get(msg.id).seen_by == [7]


class TestConversationListCache:
    def test_total_follows_deltas(self):
        cache = ConversationListCache()
        a, b = conversation(unread=2), conversation(unread=1)
        cache.apply_list([a, b])
        assert cache.total_unread == 3

        cache.apply_update(a.id, 5)
        assert cache.total_unread == 6
        cache.apply_update(b.id, 0)
        assert cache.total_unread == 5
        assert cache.conversations_with_unread == 1
        assert cache.get(a.id).unread_count == 5

    def test_mark_opened_then_confirmed(self):
        cache = ConversationListCache()
        a = conversation(unread=4)
        cache.apply_list([a])

        cache.mark_opened(a.id)
        assert cache.unread(a.id) == 0
        assert cache.total_unread == 0
        cache.confirm_opened(a.id)
        cache.revert_opened(a.id)
        assert cache.unread(a.id) == 0

    def test_mark_opened_reverted_on_failure(self):
        cache = ConversationListCache()
        a = conversation(unread=4)
        cache.apply_list([a])

        cache.mark_opened(a.id)
        cache.revert_opened(a.id)

        assert cache.unread(a.id) == 4
        assert cache.total_unread == 4

    def test_server_update_supersedes_optimistic_value(self):
        cache = ConversationListCache()
        a = conversation(unread=4)
        cache.apply_list([a])

        cache.mark_opened(a.id)
        cache.apply_update(a.id, 1)
        cache.revert_opened(a.id)

        assert cache.unread(a.id) == 1
        assert cache.total_unread == 1

    def test_reset_total_then_deltas(self):
        cache = ConversationListCache()
        a = conversation(unread=1)
        cache.apply_list([a])

        cache.reset_total(10)
        cache.apply_update(a.id, 3)

        assert cache.total_unread == 12

    def test_update_for_unknown_conversation(self):
        cache = ConversationListCache()
        cache.reset_total(2)

        assert cache.apply_update(uuid.uuid4(), 1) is False
        assert cache.total_unread == 2

    def test_unloaded_conversation_is_not_counted_twice(self):
        cache = ConversationListCache()
        loaded, unloaded = conversation(unread=1), conversation(unread=4)
        cache.apply_list([loaded])
        # server badge: 1 here plus 3 in a conversation not loaded yet
        cache.reset_total(4)

        assert cache.apply_update(unloaded.id, 4) is False
        cache.upsert(unloaded)
        assert cache.total_unread == 4

        cache.reset_total(5)
        cache.apply_update(unloaded.id, 0)
        assert cache.total_unread == 1

    def test_mark_opened_ignores_untracked_conversation(self):
        cache = ConversationListCache()
        cache.reset_total(3)
        other = uuid.uuid4()

        cache.mark_opened(other)
        cache.revert_opened(other)

        assert cache.total_unread == 3
        assert not cache.tracks(other)

    def test_update_carries_group_details(self):
        cache = ConversationListCache()
        a = conversation()
        cache.apply_list([a])

        cache.apply_update(a.id, None, details={"name": "Core", "image": None})

        assert cache.get(a.id).name == "Core"
        assert cache.total_unread == 0

    def test_last_message_orders_items(self):
        cache = ConversationListCache()
        a, b = conversation(), conversation()
        cache.apply_list([a, b])

        cache.apply_update(b.id, None, server_message(b.id, seq=5))

        assert [c.id for c in cache.items()][0] == b.id
        assert cache.get(b.id).last_message.seq == 5
        # an older preview never replaces a newer one
        cache.touch(b.id, server_message(b.id, seq=1))
        assert cache.get(b.id).last_message.seq == 5


class TestTypingIndicators:
    def test_entries_expire_without_stop(self):
        now = [0.0]
        typing = TypingIndicators(window=5.0, clock=lambda: now[0])
        cid = uuid.uuid4()

        typing.start(cid, 7)
        typing.start(cid, 8)
        assert typing.typing_users(cid) == [7, 8]

        typing.stop(cid, 8)
        assert typing.typing_users(cid) == [7]

        now[0] = 5.1
        assert typing.typing_users(cid) == []

    def test_clear(self):
        typing = TypingIndicators()
        a, b = uuid.uuid4(), uuid.uuid4()
        typing.start(a, 1)
        typing.start(b, 2)

        typing.clear(a)
        assert typing.typing_users(a) == []
        assert typing.typing_users(b) == [2]
        typing.clear()
        assert typing.typing_users(b) == []
