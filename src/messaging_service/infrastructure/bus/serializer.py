"""JSON envelope for events crossing the Redis bus."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

ENVELOPE_VERSION = 1


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"v": ENVELOPE_VERSION, "event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Raises ValueError on anything that is not an event envelope."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or "event" not in envelope:
        raise ValueError("Not an event envelope")
    data = envelope.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("Event data must be an object")
    return str(envelope["event"]), data
