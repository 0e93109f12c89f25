"""Shared fixtures: a fresh SQLite database per test."""
import uuid

import pytest
import pytest_asyncio

from db import connection
from db.models import Base
from helpers import NOW


@pytest_asyncio.fixture
async def engine(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    await connection.dispose_engine()
    engine = connection.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await connection.dispose_engine()


@pytest_asyncio.fixture
async def session(engine):
    async with connection.get_sessionmaker()() as session:
        yield session


@pytest.fixture
def workspace_id():
    return uuid.uuid4()


@pytest.fixture
def now():
    return NOW
