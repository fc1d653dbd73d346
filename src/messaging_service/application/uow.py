from __future__ import annotations

from typing import Protocol

from messaging_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from messaging_service.application.repositories.message import MessageReader, MessageWriter
from messaging_service.application.repositories.outbox import OutboxWriter
from messaging_service.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from messaging_service.application.repositories.read_state import (
    ReadStateReader,
    ReadStateWriter,
)


class UnitOfWork(Protocol):
    """Repositories sharing one transaction.

    Services call ``commit()`` themselves; staged outbox events become
    visible to the outbox worker only then.
    """

    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    read_state: ReadStateReader
    read_state_w: ReadStateWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
