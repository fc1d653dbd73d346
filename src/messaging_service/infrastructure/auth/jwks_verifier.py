from __future__ import annotations

import asyncio

import jwt
from jwt import PyJWKClient

from messaging_service.application.dto.principal import Principal
from messaging_service.application.ports.auth import InvalidToken
from messaging_service.infrastructure.auth.hs256_verifier import principal_from_claims

_ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


class JWKSVerifier:
    """Verify JWTs against the signing keys published at a JWKS endpoint."""

    def __init__(self, jwks_url: str) -> None:
        self._jwk_client = PyJWKClient(jwks_url, cache_keys=True)

    async def verify(self, token: str) -> Principal:
        try:
            # PyJWKClient fetches over blocking urllib
            signing_key = await asyncio.to_thread(
                self._jwk_client.get_signing_key_from_jwt, token
            )
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=_ASYMMETRIC_ALGORITHMS,
                options={"require": ["sub"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidToken(str(exc)) from exc
        return principal_from_claims(payload)
