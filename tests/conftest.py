"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from src.config import MetaWebhookConfig
from src.database import Base
import src.models  # noqa: F401

APP_SECRET = "test_app_secret"
VERIFY_TOKEN = "test_verify_token"
ACCESS_TOKEN = "test_access_token"


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def session_factory():
    """
    Session factory over one shared in-memory SQLite connection, so the
    ingestion code's per-change sessions all see the same tables.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    """In-memory SQLite database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def meta_config():
    return MetaWebhookConfig(
        app_secret=APP_SECRET,
        verify_token=VERIFY_TOKEN,
        access_token=ACCESS_TOKEN,
        graph_api_version="v18.0",
        graph_base_url="https://graph.facebook.com",
        timeout_seconds=5.0,
    )
