"""
AI Music Testing Configuration
Pytest fixtures and test setup
"""
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from ai_music.core.config import ProviderCredentials  # noqa: E402
from ai_music.database import models  # noqa: E402,F401
from ai_music.database.connection import Base  # noqa: E402


@pytest.fixture
def all_credentials():
    """Every provider key configured"""
    return ProviderCredentials(
        goapi_api_key="goapi-test-key",
        fal_api_key="fal-test-key",
        ai_mastering_api_key="bakuage-test-key",
        landr_api_key="landr-test-key"
    )


@pytest.fixture
def fal_only_credentials():
    return ProviderCredentials(fal_api_key="fal-test-key")


@pytest.fixture
def no_credentials():
    return ProviderCredentials()


class RecordingTransport:
    """httpx mock transport that remembers every request it served"""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest_asyncio.fixture
async def mock_http():
    """Factory for AsyncClients whose responses come from a handler function"""
    clients = []

    def factory(handler):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        client.recorded = transport.requests
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def db_session():
    """In-memory SQLite session with all tables created"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def music_params():
    """Factory for MusicCreate payloads"""
    from ai_music.database.schemas import MusicCreate

    def factory(**overrides):
        data = {
            "user_id": "user-1",
            "user_email": "user@example.com",
            "prompt": "Upbeat synthwave with driving bass",
            "style": "electronic",
            "mood": "energetic",
            "model": "suno-music-u",
            "provider": "suno",
            "duration": 120,
        }
        data.update(overrides)
        return MusicCreate(**data)

    return factory


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
