from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "messaging-service"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    REDIS_URL: str = "redis://localhost:6379/0"
    # one channel shared by every API process
    REDIS_PUBSUB_CHANNEL: str = "messaging.fanout"
    PUBSUB_RECONNECT_SECONDS: float = 1.0

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    CORS_ORIGINS: list[str] = ["*"]
    SLOW_REQUEST_MS: float = 500.0

    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_RETRY_BASE_SECONDS: float = 5.0
    OUTBOX_RETRY_MAX_SECONDS: float = 300.0
    OUTBOX_RETENTION_HOURS: int = 24
    OUTBOX_PURGE_INTERVAL_SECONDS: float = 3600.0

    WS_HEARTBEAT_SECONDS: int = 30
    TYPING_TTL_SECONDS: float = 3.0
    TYPING_THROTTLE_SECONDS: float = 1.0

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
