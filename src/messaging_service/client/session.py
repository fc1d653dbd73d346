"""One logged-in user's view of the messaging service."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Coroutine
from uuid import UUID

from messaging_service.application.exceptions import AppError
from messaging_service.client.api import MessagingApiClient
from messaging_service.client.cache import ConversationListCache, MessageTimeline, TypingIndicators
from messaging_service.client.channel import ChannelConnection, ChannelState
from messaging_service.client.config import ClientSettings
from messaging_service.client.errors import ChannelConnectionError, ClientError
from messaging_service.client.models import ClientMessage
from messaging_service.domain.value_objects.enums import EventType

logger = logging.getLogger(__name__)

_RECOVERABLE = (ClientError, AppError)


class MessagingSession:
    """Owns the REST client, the push channel and the caches of one user.

    Create it on login, ``await start()``, and ``await close()`` on logout.
    """

    def __init__(
        self,
        user_id: int,
        token: str,
        settings: ClientSettings | None = None,
        *,
        api: MessagingApiClient | None = None,
        channel: ChannelConnection | None = None,
    ) -> None:
        self.user_id = user_id
        self.settings = settings or ClientSettings()
        self.api = api or MessagingApiClient(self.settings, token)
        self.channel = channel or ChannelConnection(
            self.settings.WS_URL,
            token,
            self.handle_event,
            on_state=self.handle_state,
            attempts=self.settings.RECONNECT_ATTEMPTS,
            base_delay=self.settings.RECONNECT_DELAY,
            max_delay=self.settings.RECONNECT_DELAY_MAX,
        )
        self.conversations = ConversationListCache()
        self.typing = TypingIndicators(window=self.settings.TYPING_DISPLAY_SECONDS)
        self.active_conversation_id: UUID | None = None
        self._timelines: dict[UUID, MessageTimeline] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._poll_task: asyncio.Task[None] | None = None
        self._typing_sent: dict[UUID, float] = {}
        self._was_connected = False

    # lifecycle

    async def start(self) -> None:
        await self.refresh_conversations()
        await self.channel.start()

    async def close(self) -> None:
        tasks = list(self._tasks)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
        self._stop_polling()
        await self.channel.close()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.api.aclose()

    async def wait_idle(self) -> None:
        """Wait for in-flight sends and background refreshes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # conversations

    def timeline(self, conversation_id: UUID) -> MessageTimeline:
        timeline = self._timelines.get(conversation_id)
        if timeline is None:
            timeline = self._timelines[conversation_id] = MessageTimeline(conversation_id)
        return timeline

    async def refresh_conversations(self, page: int = 1, limit: int = 20) -> None:
        data = await self.api.list_conversations(page=page, limit=limit)
        self.conversations.apply_list(data.items)
        totals = await self.api.unread_count()
        self.conversations.reset_total(totals.unread_count)

    async def open_conversation(self, conversation_id: UUID) -> MessageTimeline:
        self.active_conversation_id = conversation_id
        timeline = self.timeline(conversation_id)
        page = await self.api.list_messages(conversation_id, limit=self.settings.PAGE_SIZE)
        timeline.apply_page(page, initial=True)
        await self.mark_seen(conversation_id)
        return timeline

    def leave_conversation(self) -> None:
        self.active_conversation_id = None

    async def load_older(self, conversation_id: UUID) -> bool:
        timeline = self.timeline(conversation_id)
        if not timeline.has_more or timeline.next_cursor is None:
            return False
        page = await self.api.list_messages(
            conversation_id, cursor=timeline.next_cursor, limit=self.settings.PAGE_SIZE,
        )
        timeline.apply_page(page)
        return True

    async def mark_seen(self, conversation_id: UUID) -> None:
        tracked = self.conversations.tracks(conversation_id)
        self.conversations.mark_opened(conversation_id)
        try:
            await self.api.mark_seen(conversation_id)
        except _RECOVERABLE as exc:
            logger.warning("mark_seen failed for %s: %s", conversation_id, exc)
            self.conversations.revert_opened(conversation_id)
            return
        self.conversations.confirm_opened(conversation_id)
        if not tracked:
            await self._refresh_total()

    # sending

    def send_message(
        self,
        conversation_id: UUID,
        content: str | None = None,
        image: str | None = None,
    ) -> ClientMessage:
        """Show the message right away and deliver it in the background.

        Delivery keeps going if the user switches conversations; the outcome
        lands in this conversation's timeline.
        """
        entry = self.timeline(conversation_id).add_pending(self.user_id, content, image)
        assert entry.client_msg_id is not None
        self._spawn(self._deliver(conversation_id, entry.client_msg_id))
        return entry

    def retry(self, conversation_id: UUID, client_msg_id: UUID) -> ClientMessage | None:
        entry = self.timeline(conversation_id).retry(client_msg_id)
        if entry is not None:
            self._spawn(self._deliver(conversation_id, client_msg_id))
        return entry

    def discard(self, conversation_id: UUID, client_msg_id: UUID) -> bool:
        return self.timeline(conversation_id).discard(client_msg_id)

    async def _deliver(self, conversation_id: UUID, client_msg_id: UUID) -> None:
        timeline = self.timeline(conversation_id)
        entry = timeline.pending(client_msg_id)
        if entry is None:
            return
        try:
            message = await self.api.send_message(
                conversation_id, entry.content, entry.image, client_msg_id,
            )
        except _RECOVERABLE as exc:
            logger.warning("Sending %s failed: %s", client_msg_id, exc)
            timeline.fail(client_msg_id)
            return
        timeline.confirm(client_msg_id, message)
        self.conversations.touch(conversation_id, message)

    # typing

    async def notify_typing(self, conversation_id: UUID) -> bool:
        now = time.monotonic()
        last = self._typing_sent.get(conversation_id)
        if last is not None and now - last < self.settings.TYPING_THROTTLE_SECONDS:
            return False
        self._typing_sent[conversation_id] = now
        return await self._send_frame(EventType.TYPING_START, conversation_id)

    async def notify_typing_stopped(self, conversation_id: UUID) -> bool:
        self._typing_sent.pop(conversation_id, None)
        return await self._send_frame(EventType.TYPING_STOP, conversation_id)

    async def _send_frame(self, event_type: EventType, conversation_id: UUID) -> bool:
        try:
            await self.channel.send(event_type, {"conversation_id": str(conversation_id)})
        except ChannelConnectionError:
            logger.debug("Dropped %s while disconnected", event_type)
            return False
        return True

    # push events

    async def handle_event(self, event_type: str, data: dict[str, Any]) -> None:
        if event_type == EventType.MESSAGE_NEW:
            self._on_message_new(ClientMessage.model_validate(data["message"]))
        elif event_type == EventType.MESSAGE_SEEN:
            timeline = self._timelines.get(UUID(data["conversation_id"]))
            if timeline is not None:
                timeline.apply_seen(data.get("message_ids", []), int(data["seer_id"]))
        elif event_type == EventType.TYPING_START:
            self.typing.start(UUID(data["conversation_id"]), int(data["user_id"]))
        elif event_type == EventType.TYPING_STOP:
            self.typing.stop(UUID(data["conversation_id"]), int(data["user_id"]))
        elif event_type == EventType.CONVERSATION_UPDATED:
            self._on_conversation_updated(data)
        else:
            logger.debug("Ignoring %s event", event_type)

    def _on_message_new(self, message: ClientMessage) -> None:
        conversation_id = message.conversation_id
        timeline = self._timelines.get(conversation_id)
        if timeline is not None:
            timeline.apply_new_message(message)
        self.conversations.touch(conversation_id, message)

        from_other = message.sender_id is not None and message.sender_id != self.user_id
        if from_other:
            self.typing.stop(conversation_id, message.sender_id)
        if from_other and conversation_id == self.active_conversation_id:
            self._spawn(self.mark_seen(conversation_id))

    def _on_conversation_updated(self, data: dict[str, Any]) -> None:
        conversation_id = UUID(data["conversation_id"])
        raw_last = data.get("last_message")
        last = ClientMessage.model_validate(raw_last) if raw_last else None
        details = {key: data[key] for key in ("name", "image") if key in data}
        known = self.conversations.apply_update(
            conversation_id, data.get("unread_count"), last, details,
        )
        if not known:
            self._spawn(self._fetch_conversation(conversation_id))

    async def _fetch_conversation(self, conversation_id: UUID) -> None:
        try:
            entry = await self.api.get_conversation(conversation_id)
        except _RECOVERABLE as exc:
            logger.warning("Could not load conversation %s: %s", conversation_id, exc)
            return
        self.conversations.upsert(entry)
        await self._refresh_total()

    async def _refresh_total(self) -> None:
        try:
            totals = await self.api.unread_count()
        except _RECOVERABLE as exc:
            logger.warning("Could not refresh unread total: %s", exc)
            return
        self.conversations.reset_total(totals.unread_count)

    # connectivity

    async def handle_state(self, state: ChannelState) -> None:
        if state == ChannelState.CONNECTED:
            self._stop_polling()
            if self._was_connected:
                self._spawn(self.resync())
            self._was_connected = True
        elif state == ChannelState.DISCONNECTED:
            self._start_polling()

    async def resync(self) -> None:
        """Catch up over REST on whatever the push channel missed."""
        try:
            await self.refresh_conversations()
            active = self.active_conversation_id
            if active is not None:
                page = await self.api.list_messages(active, limit=self.settings.PAGE_SIZE)
                self.timeline(active).apply_page(page, initial=True)
                if self.conversations.unread(active) > 0:
                    await self.mark_seen(active)
        except _RECOVERABLE as exc:
            logger.warning("Resync failed: %s", exc)

    def _start_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll(), name="messaging-poll")

    def _stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.settings.POLL_INTERVAL)
            await self.resync()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
