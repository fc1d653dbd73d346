"""Route bus events to the local connections of their recipients."""
from __future__ import annotations

import logging
from typing import Any

from messaging_service.domain.value_objects.enums import EventType
from messaging_service.infrastructure.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)

# Addressing fields; never forwarded to clients.
_ROUTING_KEYS = frozenset({"event_type", "recipient_ids", "unread_counts"})


async def dispatch_event(
    manager: ConnectionManager,
    event_type: str,
    data: dict[str, Any],
) -> None:
    body = {k: v for k, v in data.items() if k not in _ROUTING_KEYS}

    if event_type == EventType.CONVERSATION_UPDATED:
        # Each recipient only learns its own counter.
        for raw_user_id, count in (data.get("unread_counts") or {}).items():
            await manager.send_to_user(
                int(raw_user_id), event_type, {**body, "unread_count": count},
            )
        return

    recipients = data.get("recipient_ids")
    if recipients is None:
        logger.warning("Dropping %s event without recipients", event_type)
        return
    await manager.send_to_users((int(uid) for uid in recipients), event_type, body)
