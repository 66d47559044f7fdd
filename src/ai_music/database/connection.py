"""
AI Music Database Connection Manager
Async SQLAlchemy engine and session management
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.orm import declarative_base

from ..core.config import get_settings
from ..core.logging import performance_logger

# SQLAlchemy base for models
Base = declarative_base()


class DatabaseManager:
    """Manages database connections and sessions"""

    def __init__(self, database_url: Optional[str] = None, **engine_kwargs: Any):
        self.database_url = database_url
        self.engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if not self._engine:
            raise RuntimeError("Database not initialized")
        return self._engine

    def _engine_options(self, url: str) -> Dict[str, Any]:
        settings = get_settings()
        options: Dict[str, Any] = {
            "echo": settings.is_development,
            "pool_pre_ping": True,
        }
        # SQLite drivers do not take queue pool sizing
        if not url.startswith("sqlite"):
            options["pool_size"] = settings.DATABASE_POOL_SIZE
            options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        options.update(self.engine_kwargs)
        return options

    async def initialize(self, create_tables: bool = False) -> None:
        """Initialize database connections"""
        url = self.database_url or get_settings().DATABASE_URL

        self._engine = create_async_engine(url, **self._engine_options(url))
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        if create_tables:
            await self.create_all()

    async def create_all(self) -> None:
        """Create all tables (tests and local development; production uses alembic)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections"""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session"""
        if not self._session_factory:
            raise RuntimeError("Database not initialized")

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def check_health(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.fetchone()
            return True

        except Exception as e:
            performance_logger.logger.error("Database health check failed", error=str(e))
            return False


# Global database manager instance
database_manager = DatabaseManager()
