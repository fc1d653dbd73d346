from __future__ import annotations

from typing import Protocol

from messaging_service.application.dto.principal import Principal


class InvalidToken(Exception):
    """The bearer token is malformed, expired, or not signed by a trusted key."""


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Return the caller behind ``token`` or raise :class:`InvalidToken`."""
        ...
