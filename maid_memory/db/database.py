"""
Async database engine and session management.

PostgreSQL (asyncpg) with the pgvector extension in production. Any other
SQLAlchemy async URL works for local runs and tests; vector search then
falls back to in-process scoring (see engine.search).
"""

from typing import AsyncGenerator

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config.settings import settings
from .models import Base

logger = structlog.get_logger()


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.db_echo, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that commits on success."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Enable pgvector (PostgreSQL only) and create missing tables."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ready", dialect=engine.dialect.name)


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
