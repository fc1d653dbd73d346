from __future__ import annotations

from typing import Any

import jwt

from messaging_service.application.dto.principal import Principal
from messaging_service.application.ports.auth import InvalidToken


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    try:
        return Principal(user_id=int(payload["sub"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken("Token subject is not a user id") from exc


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidToken(str(exc)) from exc
        return principal_from_claims(payload)
