"""Import all models so Alembic can discover them via Base.metadata."""
from messaging_service.infrastructure.db.models.conversation import ConversationModel
from messaging_service.infrastructure.db.models.message import MessageModel
from messaging_service.infrastructure.db.models.outbox import OutboxMessageModel
from messaging_service.infrastructure.db.models.participant import ParticipantModel
from messaging_service.infrastructure.db.models.read_state import ReadStateModel
from messaging_service.infrastructure.db.models.receipt import MessageReceiptModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "MessageReceiptModel",
    "OutboxMessageModel",
    "ParticipantModel",
    "ReadStateModel",
]
