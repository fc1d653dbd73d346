"""Local state reconciled from REST responses and push events.

Server data always wins. The only optimistic writes are pending messages
(keyed by their ``client_msg_id``) and zeroing a conversation's unread count
when it is opened.
"""
from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import UUID

from messaging_service.client.models import (
    TEMP_ID_PREFIX,
    ClientMessage,
    ConversationEntry,
    MessagePageData,
)
from messaging_service.domain.value_objects.enums import MessageStatus


class MessageTimeline:
    """Messages of one conversation, newest first."""

    def __init__(self, conversation_id: UUID) -> None:
        self.conversation_id = conversation_id
        self.has_more = True
        self.next_cursor: UUID | None = None
        self.loaded = False
        self._confirmed: dict[str, ClientMessage] = {}
        self._pending: dict[UUID, ClientMessage] = {}

    def __len__(self) -> int:
        return len(self._confirmed) + len(self._pending)

    def get(self, message_id: str | UUID) -> ClientMessage | None:
        return self._confirmed.get(str(message_id))

    def pending(self, client_msg_id: UUID) -> ClientMessage | None:
        return self._pending.get(client_msg_id)

    def entries(self) -> list[ClientMessage]:
        pending = sorted(self._pending.values(), key=lambda m: m.created_at, reverse=True)
        confirmed = sorted(self._confirmed.values(), key=lambda m: m.sort_key, reverse=True)
        return pending + confirmed

    def add_pending(
        self,
        sender_id: int,
        content: str | None,
        image: str | None = None,
        *,
        client_msg_id: UUID | None = None,
    ) -> ClientMessage:
        client_msg_id = client_msg_id or uuid.uuid4()
        entry = ClientMessage(
            id=f"{TEMP_ID_PREFIX}{client_msg_id}",
            conversation_id=self.conversation_id,
            sender_id=sender_id,
            content=content,
            image=image,
            created_at=datetime.now(timezone.utc),
            client_msg_id=client_msg_id,
            status=MessageStatus.SENDING,
        )
        self._pending[client_msg_id] = entry
        return entry

    def confirm(self, client_msg_id: UUID, message: ClientMessage) -> ClientMessage:
        """The server accepted the pending entry; swap it for ``message``."""
        self._pending.pop(client_msg_id, None)
        return self._insert(message)

    def fail(self, client_msg_id: UUID) -> ClientMessage | None:
        entry = self._pending.get(client_msg_id)
        if entry is not None:
            entry.status = MessageStatus.FAILED
        return entry

    def retry(self, client_msg_id: UUID) -> ClientMessage | None:
        """Move a failed entry back to sending. Other entries are left alone."""
        entry = self._pending.get(client_msg_id)
        if entry is None or entry.status != MessageStatus.FAILED:
            return None
        entry.status = MessageStatus.SENDING
        return entry

    def discard(self, client_msg_id: UUID) -> bool:
        entry = self._pending.get(client_msg_id)
        if entry is None or entry.status != MessageStatus.FAILED:
            return False
        del self._pending[client_msg_id]
        return True

    def apply_new_message(self, message: ClientMessage) -> bool:
        """Merge a pushed message. Returns False if it was already known."""
        if message.id in self._confirmed:
            return False
        self._insert(message)
        return True

    def apply_page(self, page: MessagePageData, *, initial: bool = False) -> None:
        for message in page.items:
            self._insert(message)
        # A refreshed newest page must not rewind an already deeper cursor.
        if not (initial and self.loaded):
            self.has_more = page.has_more
            self.next_cursor = page.next_cursor
        self.loaded = True

    def apply_seen(self, message_ids: list[str], seer_id: int) -> int:
        updated = 0
        for message_id in message_ids:
            message = self._confirmed.get(str(message_id))
            if message is not None and seer_id not in message.seen_by:
                message.seen_by = sorted({*message.seen_by, seer_id})
                updated += 1
        return updated

    def _insert(self, message: ClientMessage) -> ClientMessage:
        if message.client_msg_id is not None:
            self._pending.pop(message.client_msg_id, None)
        existing = self._confirmed.get(message.id)
        seen_by = set(message.seen_by)
        if existing is not None:
            seen_by |= set(existing.seen_by)
        stored = message.model_copy(
            update={"status": MessageStatus.DELIVERED, "seen_by": sorted(seen_by)}
        )
        self._confirmed[message.id] = stored
        return stored


class ConversationListCache:
    def __init__(self) -> None:
        self._items: dict[UUID, ConversationEntry] = {}
        self._unread: dict[UUID, int] = {}
        # value before an optimistic mark_opened, until the server answers
        self._opened: dict[UUID, int] = {}
        self._server_total = False
        self.total_unread = 0

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._items

    def get(self, conversation_id: UUID) -> ConversationEntry | None:
        return self._items.get(conversation_id)

    def items(self) -> list[ConversationEntry]:
        return sorted(
            self._items.values(),
            key=lambda c: c.last_activity_at,
            reverse=True,
        )

    def unread(self, conversation_id: UUID) -> int:
        return self._unread.get(conversation_id, 0)

    def tracks(self, conversation_id: UUID) -> bool:
        """True once a per-conversation unread count is known locally."""
        return conversation_id in self._unread

    @property
    def conversations_with_unread(self) -> int:
        return sum(1 for n in self._unread.values() if n > 0)

    def upsert(self, entry: ConversationEntry) -> None:
        self._items[entry.id] = entry
        self._opened.pop(entry.id, None)
        self._set_unread(entry.id, entry.unread_count)

    def apply_list(self, entries: list[ConversationEntry]) -> None:
        for entry in entries:
            self.upsert(entry)

    def reset_total(self, total: int) -> None:
        """Adopt the server's badge; it also counts conversations not loaded here.

        After this, the first count learned for an untracked conversation is
        already inside the total and is not added again. The caller re-reads
        the badge to pick up any change in it.
        """
        self.total_unread = total
        self._server_total = True

    def apply_update(
        self,
        conversation_id: UUID,
        unread_count: int | None,
        last_message: ClientMessage | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """Apply a server update. Returns False if the conversation is unknown.

        ``details`` carries changed group fields (``name``, ``image``).
        """
        if unread_count is not None:
            self._opened.pop(conversation_id, None)
            self._set_unread(conversation_id, unread_count)
        if last_message is not None:
            self.touch(conversation_id, last_message)
        entry = self._items.get(conversation_id)
        if details and entry is not None:
            self._items[conversation_id] = entry.model_copy(update=details)
        return conversation_id in self._items

    def touch(self, conversation_id: UUID, message: ClientMessage) -> None:
        entry = self._items.get(conversation_id)
        if entry is None:
            return
        if entry.last_message is not None and entry.last_message.sort_key >= message.sort_key:
            return
        self._items[conversation_id] = entry.model_copy(
            update={"last_message": message, "last_message_at": message.created_at}
        )

    def mark_opened(self, conversation_id: UUID) -> None:
        if not self.tracks(conversation_id):
            return
        if conversation_id not in self._opened:
            self._opened[conversation_id] = self.unread(conversation_id)
        self._set_unread(conversation_id, 0)

    def confirm_opened(self, conversation_id: UUID) -> None:
        self._opened.pop(conversation_id, None)

    def revert_opened(self, conversation_id: UUID) -> None:
        previous = self._opened.pop(conversation_id, None)
        if previous is not None:
            self._set_unread(conversation_id, previous)

    def _set_unread(self, conversation_id: UUID, count: int) -> None:
        previous = self._unread.get(conversation_id)
        self._unread[conversation_id] = count
        if previous is not None:
            self.total_unread = max(0, self.total_unread + count - previous)
        elif not self._server_total:
            self.total_unread += count
        entry = self._items.get(conversation_id)
        if entry is not None and entry.unread_count != count:
            self._items[conversation_id] = entry.model_copy(update={"unread_count": count})


class TypingIndicators:
    """Who is typing where. Entries lapse after ``window`` seconds on their own."""

    def __init__(
        self,
        window: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._clock = clock
        self._expires: dict[tuple[UUID, int], float] = {}

    def start(self, conversation_id: UUID, user_id: int) -> None:
        self._expires[(conversation_id, user_id)] = self._clock() + self._window

    def stop(self, conversation_id: UUID, user_id: int) -> None:
        self._expires.pop((conversation_id, user_id), None)

    def typing_users(self, conversation_id: UUID) -> list[int]:
        now = self._clock()
        for key in [k for k, deadline in self._expires.items() if deadline <= now]:
            del self._expires[key]
        return sorted(uid for cid, uid in self._expires if cid == conversation_id)

    def clear(self, conversation_id: UUID | None = None) -> None:
        if conversation_id is None:
            self._expires.clear()
            return
        for key in [k for k in self._expires if k[0] == conversation_id]:
            del self._expires[key]
