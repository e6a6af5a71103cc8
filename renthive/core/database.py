"""
RentHive Database Module
One async engine per process; services open a unit of work with
get_db_session() and it commits on success, rolls back on error.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from renthive.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base of every RentHive table."""


_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def engine_options(settings: Settings) -> dict[str, Any]:
    """create_async_engine keyword arguments for the configured backend."""
    options: dict[str, Any] = {"echo": settings.db_echo or settings.debug}
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        # aiosqlite hands the connection to a worker thread
        options.update(poolclass=NullPool, connect_args={"check_same_thread": False})
    else:
        options.update(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **engine_options(settings))
        logger.info("Database engine ready: %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def _session_factory() -> async_sessionmaker[AsyncSession]:
    global _sessions
    if _sessions is None:
        _sessions = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)
    return _sessions


async def init_db() -> None:
    """Create any missing tables. Called from the app lifespan."""
    from renthive.models import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%d tables)", len(Base.metadata.tables))


async def close_db() -> None:
    """Dispose of the engine; the next get_engine() builds a fresh one."""
    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work for a service call.

        async with get_db_session() as session:
            prop = await session.get(Property, property_id)
    """
    async with _session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
