from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from messaging_service.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    return create_async_engine(
        config.database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=config.DB_POOL_RECYCLE,
        echo=config.DB_ECHO,
        # shows up in pg_stat_activity
        connect_args={"server_settings": {"application_name": config.APP_NAME}},
    )


engine = build_engine(settings)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)
