"""Request timing logs; slow requests are logged as warnings."""
from __future__ import annotations

import logging
import time

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestTimingMiddleware:
    def __init__(self, app: ASGIApp, slow_ms: float = 500.0) -> None:
        self.app = app
        self.slow_ms = slow_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in _QUIET_PATHS:
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        path = scope.get("path", "")
        start = time.perf_counter()
        status_code = 500

        async def send_timed(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed_ms = (time.perf_counter() - start) * 1000
                MutableHeaders(scope=message)["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
            await send(message)

        try:
            await self.app(scope, receive, send_timed)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            level = logging.WARNING if elapsed_ms > self.slow_ms else logging.INFO
            logger.log(level, "%s %s %s %.1fms", method, path, status_code, elapsed_ms)
