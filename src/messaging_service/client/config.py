from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    WS_URL: str = "ws://localhost:8000/ws/chat"

    REQUEST_TIMEOUT: float = 10.0

    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_DELAY: float = 1.0
    RECONNECT_DELAY_MAX: float = 5.0

    # REST polling while the push channel is down
    POLL_INTERVAL: float = 15.0

    TYPING_DISPLAY_SECONDS: float = 5.0
    TYPING_THROTTLE_SECONDS: float = 1.0

    PAGE_SIZE: int = 50

    model_config = SettingsConfigDict(
        env_prefix="MESSAGING_CLIENT_",
        env_file=".env",
        extra="ignore",
    )
