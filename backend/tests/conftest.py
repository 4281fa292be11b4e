import os

# Ensure config reads these during import in tests.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEMA_COMPAT_ON_STARTUP", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from backend.src.db.models import Trip, TripMember


@pytest_asyncio.fixture
async def engine(monkeypatch):
    test_engine = create_async_engine(os.environ["DATABASE_URL"])

    import backend.src.db.session as session_module

    session_module._ENGINE = test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    try:
        yield test_engine
    finally:
        await test_engine.dispose()
        session_module._ENGINE = None


@pytest_asyncio.fixture
async def session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as s:
        yield s


@pytest_asyncio.fixture
async def trip(session):
    """A committed trip with three members; alice created it."""
    t = Trip(name="Portland long weekend", destination="Portland", created_by="alice")
    session.add(t)
    await session.flush()
    for user_id in ("alice", "bob", "carol"):
        session.add(TripMember(trip_id=t.id, user_id=user_id, role="owner" if user_id == "alice" else "member"))
    await session.commit()
    return t
