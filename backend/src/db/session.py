from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from ..config import DATABASE_URL

logger = logging.getLogger(__name__)

_ENGINE: Optional[AsyncEngine] = None


def engine_options(url: str) -> dict[str, Any]:
    # SQLite backs tests and local runs; a single in-memory database has no pool to ping.
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True}


def sync_database_url(url: str) -> str:
    """The same database through a blocking driver, for Alembic."""
    if "+asyncpg" in url:
        return url.replace("+asyncpg", "+psycopg2")
    if "+aiosqlite" in url:
        return url.replace("+aiosqlite", "")
    return url


def get_engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set")
        _ENGINE = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))
    return _ENGINE


async def dispose_engine() -> None:
    global _ENGINE
    if _ENGINE is not None:
        await _ENGINE.dispose()
        _ENGINE = None


async def get_session() -> AsyncIterator[AsyncSession]:
    """One unit of work per request.

    Services only flush; the proposal, link and RSVP writes of a request become visible
    together on commit. Conversion conflicts roll the session back before raising, so the
    rollback here is a no-op for them.
    """
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            logger.debug("Rolling back request session error=%s", type(exc).__name__)
            await session.rollback()
            raise
