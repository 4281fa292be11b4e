"""Run Alembic migrations, then the schema compatibility patches, under one advisory lock.

Several replicas may boot at once; the Postgres advisory lock makes sure only one of them
migrates while the others wait.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys

import asyncpg

LOCK_ID = 987654321

logger = logging.getLogger(__name__)


def _dsn_for_asyncpg(database_url: str) -> str:
    # App URLs use SQLAlchemy dialect prefixes; asyncpg wants plain postgresql://
    if database_url.startswith("postgresql+asyncpg://"):
        return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
    if database_url.startswith("postgresql+psycopg2://"):
        return database_url.replace("postgresql+psycopg2://", "postgresql://", 1)
    return database_url


async def _apply_schema_compat() -> None:
    from backend.src.db.compat import SchemaCompat
    from backend.src.db.session import dispose_engine, get_engine

    schema_compat = SchemaCompat()
    try:
        async with get_engine().begin() as conn:
            await schema_compat.apply_all(conn)
    finally:
        await dispose_engine()
    logger.info("Schema compatibility patches applied tables=%d", len(schema_compat.tables))


async def _run() -> int:
    database_url = os.getenv("DATABASE_URL", "")
    if not database_url:
        print("DATABASE_URL is not set; skipping migrations.", file=sys.stderr)
        return 0

    conn = await asyncpg.connect(_dsn_for_asyncpg(database_url))
    try:
        await conn.execute("SELECT pg_advisory_lock($1);", LOCK_ID)
        try:
            completed = subprocess.run(
                ["alembic", "-c", "backend/alembic.ini", "upgrade", "head"],
                check=True,
            )
            await _apply_schema_compat()
            return completed.returncode
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1);", LOCK_ID)
    finally:
        await conn.close()


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
