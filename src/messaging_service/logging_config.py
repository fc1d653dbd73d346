from __future__ import annotations

import logging

from messaging_service.api.middleware.correlation_id import correlation_id_ctx
from messaging_service.config import settings


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the current request id ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get() or "-"
        return True


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel((level or settings.LOG_LEVEL).upper())
