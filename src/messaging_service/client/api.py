"""REST client for the messaging service."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from messaging_service.application.exceptions import ERRORS_BY_CODE
from messaging_service.client.config import ClientSettings
from messaging_service.client.errors import ApiError, ChannelConnectionError, RequestTimeout
from messaging_service.client.models import (
    ClientMessage,
    ConversationEntry,
    ConversationListData,
    MessagePageData,
    UnreadCountData,
)

logger = logging.getLogger(__name__)

_PREFIX = "/api/v1/conversations"


class MessagingApiClient:
    def __init__(
        self,
        settings: ClientSettings,
        token: str,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._token = token
        self.http = http or httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=httpx.Timeout(settings.REQUEST_TIMEOUT),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self.http.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(
                f"Request to {path} timed out after {self.settings.REQUEST_TIMEOUT}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise ChannelConnectionError(f"Connection failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_from_response(response)
        if not response.content:
            return None
        return response.json()

    async def list_conversations(self, page: int = 1, limit: int = 20) -> ConversationListData:
        data = await self.call("GET", _PREFIX, params={"page": page, "limit": limit})
        return ConversationListData.model_validate(data)

    async def get_conversation(self, conversation_id: UUID) -> ConversationEntry:
        data = await self.call("GET", f"{_PREFIX}/{conversation_id}")
        return ConversationEntry.model_validate(data)

    async def unread_count(self) -> UnreadCountData:
        data = await self.call("GET", f"{_PREFIX}/unread/count")
        return UnreadCountData.model_validate(data)

    async def create_direct(self, participant_id: int) -> ConversationEntry:
        data = await self.call("POST", _PREFIX, json={"participant_id": participant_id})
        return ConversationEntry.model_validate(data)

    async def create_group(
        self,
        name: str,
        participant_ids: list[int],
        image: str | None = None,
    ) -> ConversationEntry:
        body: dict[str, Any] = {"name": name, "participant_ids": participant_ids}
        if image:
            body["image"] = image
        data = await self.call("POST", f"{_PREFIX}/group", json=body)
        return ConversationEntry.model_validate(data)

    async def update_group(
        self,
        conversation_id: UUID,
        *,
        name: str | None = None,
        image: str | None = None,
    ) -> ConversationEntry:
        body = {key: value for key, value in (("name", name), ("image", image)) if value}
        data = await self.call("PUT", f"{_PREFIX}/{conversation_id}", json=body)
        return ConversationEntry.model_validate(data)

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: UUID | None = None,
        limit: int = 50,
    ) -> MessagePageData:
        params: dict[str, Any] = {"limit": limit}
        if cursor is not None:
            params["cursor"] = str(cursor)
        data = await self.call("GET", f"{_PREFIX}/{conversation_id}/messages", params=params)
        return MessagePageData.model_validate(data)

    async def send_message(
        self,
        conversation_id: UUID,
        content: str | None,
        image: str | None,
        client_msg_id: UUID,
    ) -> ClientMessage:
        data = await self.call(
            "POST",
            f"{_PREFIX}/{conversation_id}/messages",
            json={
                "content": content,
                "image": image,
                "client_msg_id": str(client_msg_id),
            },
        )
        return ClientMessage.model_validate(data)

    async def mark_seen(self, conversation_id: UUID) -> int:
        data = await self.call("PUT", f"{_PREFIX}/{conversation_id}/seen")
        return int(data["updated"])


def _error_from_response(response: httpx.Response) -> Exception:
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return ApiError(response.status_code, response.reason_phrase)

    detail = body.get("detail")
    detail_text = detail if isinstance(detail, str) else str(detail or response.reason_phrase)
    error_cls = ERRORS_BY_CODE.get(str(body.get("code")))
    if error_cls is not None:
        return error_cls(detail_text)
    return ApiError(response.status_code, detail_text)
