"""FastAPI dependency injection helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from messaging_service.application.dto.principal import Principal
from messaging_service.application.ports.auth import InvalidToken, TokenVerifier
from messaging_service.config import settings
from messaging_service.infrastructure.auth.hs256_verifier import HS256Verifier
from messaging_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from messaging_service.infrastructure.db.session import AsyncSessionLocal
from messaging_service.infrastructure.db.uow import SqlAlchemyUoW
from messaging_service.services.typing_service import TypingTracker

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with SqlAlchemyUoW(AsyncSessionLocal()) as uow:
        yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


@lru_cache(maxsize=1)
def get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        if not settings.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    try:
        return await get_verifier().verify(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_typing_tracker(websocket: WebSocket) -> TypingTracker:
    return websocket.app.state.typing


TypingDep = Annotated[TypingTracker, Depends(get_typing_tracker)]
