from __future__ import annotations

from dataclasses import dataclass

from messaging_service.domain.entities.conversation import Conversation
from messaging_service.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """A conversation as seen by one participant."""

    conversation: Conversation
    participant_ids: list[int]
    unread_count: int
    last_message: Message | None


@dataclass(frozen=True, slots=True)
class ConversationPage:
    items: list[ConversationSummary]
    page: int
    limit: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total


@dataclass(frozen=True, slots=True)
class UnreadTotals:
    unread_count: int
    conversations_with_unread: int
