"""
Tests for the async database manager
"""
import pytest
import pytest_asyncio
from sqlalchemy import inspect, text

from ai_music.database import DatabaseManager

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def manager():
    manager = DatabaseManager("sqlite+aiosqlite://")
    yield manager
    await manager.close()


class TestDatabaseManager:
    """Test engine lifecycle, sessions and health checks"""

    def test_engine_requires_initialize(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            DatabaseManager("sqlite+aiosqlite://").engine

    @pytest.mark.asyncio
    async def test_initialize_creates_tables(self, manager):
        await manager.initialize(create_tables=True)

        async with manager.engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        assert {"generated_music", "music_folders"} <= set(tables)

    @pytest.mark.asyncio
    async def test_health_check(self, manager):
        await manager.initialize()

        assert await manager.check_health() is True

    @pytest.mark.asyncio
    async def test_health_check_without_initialize(self, manager):
        assert await manager.check_health() is False

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, manager):
        await manager.initialize()

        with pytest.raises(ValueError):
            async with manager.get_session() as session:
                await session.execute(text("SELECT 1"))
                raise ValueError("boom")

    @pytest.mark.asyncio
    async def test_close_resets_engine(self, manager):
        await manager.initialize()
        await manager.close()

        with pytest.raises(RuntimeError):
            manager.engine
