"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. No external services are touched.
"""
import os

# Settings require a database URL; point it at in-memory SQLite
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

import src.models  # noqa: F401  registers tables on Base.metadata
from src.database import Base


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


# Wednesday noon; weeks are bucketed Monday-Sunday
FIXED_NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def now():
    """Fixed reference time so weekly buckets are deterministic."""
    return FIXED_NOW


@pytest.fixture
def draft_text():
    """A ten-word generated draft; edits are measured against it word by word."""
    return "Thanks for reaching out, I can meet on Tuesday afternoon."
