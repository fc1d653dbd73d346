"""Outbox worker: relays committed domain events to Redis Pub/Sub.

Every API process subscribes to the same channel and pushes each event to
the recipients connected to it. Records are published in insertion order;
a record that keeps failing is retried with exponential backoff and finally
parked as ``dead``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from messaging_service.application.ports.bus import EventPublisher
from messaging_service.application.uow import UnitOfWork
from messaging_service.config import settings
from messaging_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from messaging_service.infrastructure.db.session import AsyncSessionLocal
from messaging_service.infrastructure.db.uow import SqlAlchemyUoW
from messaging_service.logging_config import configure_logging

logger = logging.getLogger(__name__)


def retry_delay(attempts: int) -> float:
    """Seconds to wait after the ``attempts``-th failure (0-based)."""
    return min(
        settings.OUTBOX_RETRY_BASE_SECONDS * (2 ** attempts),
        settings.OUTBOX_RETRY_MAX_SECONDS,
    )


async def process_batch(
    uow: UnitOfWork,
    publisher: EventPublisher,
    *,
    channel: str | None = None,
    batch_size: int | None = None,
    max_attempts: int | None = None,
) -> int:
    """Publish one batch of pending records. Returns how many were sent."""
    channel = channel or settings.REDIS_PUBSUB_CHANNEL
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    batch = await uow.outbox.fetch_pending(batch_size)
    if not batch:
        return 0

    sent_ids: list[int] = []
    for record in batch:
        if record.attempts >= max_attempts:
            logger.warning("Outbox record %d exceeded max attempts, parking", record.id)
            await uow.outbox.mark_dead(record.id, None)
            continue
        try:
            await publisher.publish(channel, {"event_type": record.event_type, **record.payload})
        except Exception as exc:
            logger.exception("Failed to publish outbox record %d (%s)", record.id, record.event_type)
            error = f"{type(exc).__name__}: {exc}"
            if record.attempts + 1 >= max_attempts:
                await uow.outbox.mark_dead(record.id, error)
            else:
                next_retry_at = datetime.now(timezone.utc) + timedelta(
                    seconds=retry_delay(record.attempts)
                )
                await uow.outbox.mark_failed(record.id, next_retry_at, error)
            continue
        sent_ids.append(record.id)

    await uow.outbox.mark_sent(sent_ids)
    await uow.commit()
    if sent_ids:
        logger.info("Published %d outbox records", len(sent_ids))
    return len(sent_ids)


async def purge_sent(uow: UnitOfWork, *, retention: timedelta | None = None) -> int:
    retention = retention or timedelta(hours=settings.OUTBOX_RETENTION_HOURS)
    purged = await uow.outbox.purge_sent(datetime.now(timezone.utc) - retention)
    await uow.commit()
    if purged:
        logger.info("Purged %d published outbox records", purged)
    return purged


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d, channel=%s)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
        settings.REDIS_PUBSUB_CHANNEL,
    )

    last_purge = 0.0
    try:
        while True:
            sent = 0
            try:
                async with SqlAlchemyUoW(AsyncSessionLocal()) as uow:
                    sent = await process_batch(uow, publisher)
                    if time.monotonic() - last_purge >= settings.OUTBOX_PURGE_INTERVAL_SECONDS:
                        await purge_sent(uow)
                        last_purge = time.monotonic()
            except Exception:
                logger.exception("Outbox worker loop error")
            # a full batch means more is probably waiting
            if sent < settings.OUTBOX_BATCH_SIZE:
                await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


def main() -> None:
    configure_logging()
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
