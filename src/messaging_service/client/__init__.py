"""Python client for the messaging service: REST, push channel and local caches."""
from messaging_service.client.api import MessagingApiClient
from messaging_service.client.cache import ConversationListCache, MessageTimeline, TypingIndicators
from messaging_service.client.channel import ChannelConnection, ChannelState
from messaging_service.client.config import ClientSettings
from messaging_service.client.errors import ApiError, ChannelConnectionError, ClientError, RequestTimeout
from messaging_service.client.session import MessagingSession

__all__ = [
    "ApiError",
    "ChannelConnection",
    "ChannelConnectionError",
    "ChannelState",
    "ClientError",
    "ClientSettings",
    "ConversationListCache",
    "MessageTimeline",
    "MessagingApiClient",
    "MessagingSession",
    "RequestTimeout",
    "TypingIndicators",
]
