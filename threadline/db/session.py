"""
Async engine and session factory.

Production runs on PostgreSQL through asyncpg; tests swap in aiosqlite via
``DATABASE_URL``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from threadline.core.config import Settings, settings


def engine_options(config: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` under ``config``."""
    options: dict[str, Any] = {"echo": config.DB_ECHO, "pool_pre_ping": True}
    if make_url(config.DATABASE_URL).get_backend_name() != "sqlite":
        options.update(
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_recycle=config.DB_POOL_RECYCLE,
        )
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings))

# expire_on_commit=False: handlers keep reading ORM objects after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
