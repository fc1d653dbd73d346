from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.application.repositories.outbox import OutboxRecord
from messaging_service.infrastructure.db.models.outbox import OutboxMessageModel

_MAX_ERROR_LENGTH = 1000


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._session.add(OutboxMessageModel(event_type=event_type, payload=payload))
        await self._session.flush()

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        due = (
            select(OutboxMessageModel.id)
            .where(
                OutboxMessageModel.status.in_(("pending", "failed")),
                (
                    OutboxMessageModel.next_retry_at.is_(None)
                    | (OutboxMessageModel.next_retry_at <= datetime.now(timezone.utc))
                ),
            )
            .order_by(OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )

        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(due.scalar_subquery()))
            .values(status="processing")
            .returning(
                OutboxMessageModel.id,
                OutboxMessageModel.event_type,
                OutboxMessageModel.payload,
                OutboxMessageModel.attempts,
            )
        )
        result = await self._session.execute(stmt)
        records = [
            OutboxRecord(id=r.id, event_type=r.event_type, payload=r.payload, attempts=r.attempts)
            for r in result
        ]
        # insertion order is publish order
        return sorted(records, key=lambda r: r.id)

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status="sent", published_at=func.now(), last_error=None)
        )

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status="failed",
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
                last_error=error[:_MAX_ERROR_LENGTH],
            )
        )

    async def mark_dead(self, record_id: int, error: str | None) -> None:
        values: dict[str, Any] = {"status": "dead"}
        if error is not None:
            values["attempts"] = OutboxMessageModel.attempts + 1
            values["last_error"] = error[:_MAX_ERROR_LENGTH]
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(**values)
        )

    async def purge_sent(self, before: datetime) -> int:
        result = await self._session.execute(
            delete(OutboxMessageModel).where(
                OutboxMessageModel.status == "sent",
                OutboxMessageModel.published_at < before,
            )
        )
        return result.rowcount or 0
