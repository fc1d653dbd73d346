from __future__ import annotations

from enum import StrEnum


class ConversationKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class MessageType(StrEnum):
    TEXT = "text"
    SYSTEM = "system"


class MessageStatus(StrEnum):
    """Delivery state of a message as seen by the client that sent it."""

    SENDING = "sending"
    DELIVERED = "delivered"
    FAILED = "failed"


class EventType(StrEnum):
    MESSAGE_NEW = "message:new"
    MESSAGE_SEEN = "message:seen"
    TYPING_START = "typing:start"
    TYPING_STOP = "typing:stop"
    CONVERSATION_UPDATED = "conversation:updated"
