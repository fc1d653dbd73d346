from __future__ import annotations


class ClientError(Exception):
    """Base error for client-side failures."""


class ChannelConnectionError(ClientError):
    """The server could not be reached. Recoverable by reconnecting."""


class RequestTimeout(ClientError):
    """A REST call exceeded the configured timeout. Only retried explicitly."""


class ApiError(ClientError):
    """Error response without a known error code."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")
