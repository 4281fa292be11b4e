"""Schema compatibility patches for category tables.

Older deployments created the category tables with different column names (``created_by``
instead of ``user_id``, ``origin`` instead of ``departure_airport`` ...) and left blank
status values behind. The patches below are an ordered list applied once per table per
process: missing logical columns are added and back-filled from their legacy source, then
status columns are normalized so later code can rely on a clean status domain.

``SchemaCompat`` holds the "already patched" state. The application bootstrap owns one
instance (see ``backend.src.app.main``); writers call ``ensure()`` before touching a table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlmodel.ext.asyncio.session import AsyncSession

from ..services.errors import SchemaError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnPatch:
    table: str
    column: str
    type_: sa.types.TypeEngine
    legacy_source: Optional[str] = None
    # A required column must exist or be derivable from its legacy source.
    required: bool = False


@dataclass(frozen=True)
class StatusPatch:
    table: str
    column: str
    default: str


def _text() -> sa.types.TypeEngine:
    return sa.Text()


COLUMN_PATCHES: tuple[ColumnPatch, ...] = (
    ColumnPatch("flights", "user_id", _text(), legacy_source="created_by", required=True),
    ColumnPatch("flights", "departure_airport", _text(), legacy_source="origin"),
    ColumnPatch("flights", "arrival_airport", _text(), legacy_source="destination"),
    ColumnPatch("flights", "airline_code", _text()),
    ColumnPatch("flights", "departure_code", _text()),
    ColumnPatch("flights", "arrival_code", _text()),
    ColumnPatch("flights", "price", sa.Float()),
    ColumnPatch("flights", "currency", _text()),
    ColumnPatch("flights", "booking_url", _text()),
    ColumnPatch("hotels", "user_id", _text(), legacy_source="created_by", required=True),
    ColumnPatch("hotels", "hotel_name", _text(), legacy_source="name"),
    ColumnPatch("hotels", "city", _text()),
    ColumnPatch("hotels", "country", _text()),
    ColumnPatch("hotels", "guest_count", sa.Integer()),
    ColumnPatch("hotels", "room_count", sa.Integer()),
    ColumnPatch("hotels", "price_per_night", sa.Float()),
    ColumnPatch("hotels", "total_price", sa.Float()),
    ColumnPatch("hotels", "currency", _text()),
    ColumnPatch("hotels", "booking_url", _text()),
    ColumnPatch("restaurants", "user_id", _text(), legacy_source="created_by", required=True),
    ColumnPatch("restaurants", "reservation_date", sa.DateTime(), legacy_source="reservation_time"),
    ColumnPatch("restaurants", "city", _text()),
    ColumnPatch("restaurants", "country", _text()),
    ColumnPatch("restaurants", "party_size", sa.Integer()),
    ColumnPatch("restaurants", "price_range", _text()),
    ColumnPatch("restaurants", "booking_url", _text()),
    ColumnPatch("activities", "user_id", _text(), legacy_source="created_by", required=True),
    ColumnPatch("activities", "name", _text(), legacy_source="title"),
    ColumnPatch("activities", "cost_per_person", sa.Float()),
    ColumnPatch("activities", "max_capacity", sa.Integer()),
    ColumnPatch("flight_proposals", "proposed_by", _text(), legacy_source="created_by", required=True),
    ColumnPatch("flight_proposals", "average_ranking", sa.Float()),
    ColumnPatch("hotel_proposals", "proposed_by", _text(), legacy_source="created_by", required=True),
    ColumnPatch("hotel_proposals", "hotel_name", _text(), legacy_source="name"),
    ColumnPatch("hotel_proposals", "average_ranking", sa.Float()),
    ColumnPatch("restaurant_proposals", "proposed_by", _text(), legacy_source="created_by", required=True),
    ColumnPatch("restaurant_proposals", "average_ranking", sa.Float()),
    ColumnPatch("activity_proposals", "proposed_by", _text(), legacy_source="created_by", required=True),
    ColumnPatch("activity_proposals", "average_ranking", sa.Float()),
)

STATUS_PATCHES: tuple[StatusPatch, ...] = (
    StatusPatch("flights", "status", "scheduled"),
    StatusPatch("hotels", "status", "scheduled"),
    StatusPatch("restaurants", "status", "scheduled"),
    StatusPatch("activities", "status", "scheduled"),
    StatusPatch("activities", "type", "SCHEDULED"),
    StatusPatch("flight_proposals", "status", "active"),
    StatusPatch("hotel_proposals", "status", "active"),
    StatusPatch("restaurant_proposals", "status", "active"),
    StatusPatch("activity_proposals", "status", "active"),
)


def status_normalization_sql(
    table: str,
    column: str,
    default: str,
    *,
    enum_type: Optional[str] = None,
    set_default: bool = False,
) -> list[str]:
    """Statements that clean legacy status values, then apply the default.

    Enumerated columns cannot hold blank strings, so only NULLs are rewritten, with the
    literal cast to the declared type.
    """
    if enum_type:
        literal = f"'{default}'::{enum_type}"
        return [
            f"UPDATE {table} SET {column} = {literal} WHERE {column} IS NULL",
            f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {literal}",
        ]

    literal = f"'{default}'"
    statements = [f"UPDATE {table} SET {column} = {literal} WHERE {column} IS NULL OR TRIM({column}) = ''"]
    if set_default:
        statements.append(f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {literal}")
    return statements


def _live_columns(sync_conn: Any, table: str) -> Optional[dict[str, Any]]:
    insp = inspect(sync_conn)
    if not insp.has_table(table):
        return None
    return {col["name"]: col["type"] for col in insp.get_columns(table)}


class SchemaCompat:
    def __init__(
        self,
        column_patches: Iterable[ColumnPatch] = COLUMN_PATCHES,
        status_patches: Iterable[StatusPatch] = STATUS_PATCHES,
    ):
        self._column_patches = tuple(column_patches)
        self._status_patches = tuple(status_patches)
        self._patched: set[str] = set()

    @property
    def tables(self) -> list[str]:
        ordered: list[str] = []
        for patch in (*self._column_patches, *self._status_patches):
            if patch.table not in ordered:
                ordered.append(patch.table)
        return ordered

    def is_patched(self, table: str) -> bool:
        return table in self._patched

    async def apply_all(self, conn: AsyncConnection) -> None:
        for table in self.tables:
            await self._patch_table(conn, table)

    async def ensure(self, session: AsyncSession, table: str) -> None:
        if table in self._patched:
            return
        conn = await session.connection()
        await self._patch_table(conn, table)

    async def _patch_table(self, conn: AsyncConnection, table: str) -> None:
        columns = await conn.run_sync(_live_columns, table)
        if columns is None:
            raise SchemaError(f"Table {table} does not exist")

        dialect = conn.dialect
        is_postgres = dialect.name == "postgresql"
        add_clause = "ADD COLUMN IF NOT EXISTS" if is_postgres else "ADD COLUMN"

        for patch in self._column_patches:
            if patch.table != table or patch.column in columns:
                continue
            source = patch.legacy_source if patch.legacy_source in columns else None
            if patch.required and source is None:
                raise SchemaError(
                    f"Cannot reconcile {table}.{patch.column}: neither it nor {patch.legacy_source} exists"
                )
            type_sql = patch.type_.compile(dialect=dialect)
            await conn.execute(text(f"ALTER TABLE {table} {add_clause} {patch.column} {type_sql}"))
            if source is not None:
                await conn.execute(
                    text(
                        f"""UPDATE {table}
          SET {patch.column} = {source}
          WHERE {patch.column} IS NULL"""
                    )
                )
            columns[patch.column] = patch.type_
            logger.info("Schema patch table=%s column=%s backfilled_from=%s", table, patch.column, source)

        for patch in self._status_patches:
            if patch.table != table:
                continue
            if patch.column not in columns:
                await conn.execute(text(f"ALTER TABLE {table} {add_clause} {patch.column} TEXT"))
                columns[patch.column] = sa.Text()
                logger.info("Schema patch table=%s column=%s added", table, patch.column)
            col_type = columns[patch.column]
            enum_type = col_type.name if isinstance(col_type, sa.Enum) and is_postgres else None
            for statement in status_normalization_sql(
                table,
                patch.column,
                patch.default,
                enum_type=enum_type,
                set_default=is_postgres,
            ):
                await conn.execute(text(statement))

        self._patched.add(table)
