"""
RentHive - Database Engine Tests
"""

import pytest
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from renthive.core.config import Settings
from renthive.core.database import engine_options, get_db_session
from renthive.models.models import Profile


class TestEngineOptions:
    def test_sqlite_uses_null_pool(self):
        options = engine_options(Settings(database_url="sqlite:///./x.db"))
        assert options["poolclass"] is NullPool
        assert options["connect_args"] == {"check_same_thread": False}

    def test_postgres_uses_configured_pool(self):
        settings = Settings(database_url="postgres://u:p@db:5432/renthive", db_pool_size=3, db_max_overflow=4)
        assert settings.database_url.startswith("postgresql+asyncpg://")
        options = engine_options(settings)
        assert options["poolclass"] is AsyncAdaptedQueuePool
        assert options["pool_size"] == 3
        assert options["max_overflow"] == 4
        assert options["pool_pre_ping"] is True


@pytest.mark.anyio
async def test_session_rolls_back_on_error():
    with pytest.raises(RuntimeError):
        async with get_db_session() as session:
            session.add(Profile(id="55555555-eeee-4000-8000-000000000005", email="gone@example.com"))
            await session.flush()
            raise RuntimeError("boom")

    async with get_db_session() as session:
        assert await session.get(Profile, "55555555-eeee-4000-8000-000000000005") is None
