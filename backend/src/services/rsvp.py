from __future__ import annotations

import logging
import uuid

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.models import EntityRsvp, utcnow
from .categories import category_for_table
from .errors import NotFoundError, ProposalValidationError
from .trips import list_member_ids, require_member

logger = logging.getLogger(__name__)

RSVP_STATUSES = ("pending", "accepted", "declined")


def _insert_ignoring_duplicates(dialect_name: str, values: dict):
    if dialect_name == "postgresql":
        stmt = postgresql.insert(EntityRsvp).values(**values)
        return stmt.on_conflict_do_nothing(index_elements=["scheduled_entity_id", "user_id"])
    if dialect_name == "sqlite":
        stmt = sqlite.insert(EntityRsvp).values(**values)
        return stmt.on_conflict_do_nothing(index_elements=["scheduled_entity_id", "user_id"])
    return insert(EntityRsvp).values(**values)


class RsvpService:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def _existing_user_ids(self, scheduled_entity_id: uuid.UUID) -> set[str]:
        stmt = select(EntityRsvp.user_id).where(EntityRsvp.scheduled_entity_id == scheduled_entity_id)
        return set((await self._session.exec(stmt)).all())

    async def create_rsvps(
        self,
        scheduled_table: str,
        scheduled_entity_id: uuid.UUID,
        trip_id: uuid.UUID,
        creator_user_id: str,
    ) -> int:
        """Give every current trip member an RSVP row for a scheduled entity.

        The creator starts as "accepted", everyone else as "pending". Members who already
        have a row are skipped, so repeated or concurrent calls never duplicate rows.
        Returns the number of rows inserted.
        """
        member_ids = await list_member_ids(self._session, trip_id)
        existing = await self._existing_user_ids(scheduled_entity_id)
        conn = await self._session.connection()

        created = 0
        for user_id in member_ids:
            if user_id in existing:
                continue
            now = utcnow()
            accepted = user_id == creator_user_id
            values = {
                "id": uuid.uuid4(),
                "scheduled_table": scheduled_table,
                "scheduled_entity_id": scheduled_entity_id,
                "user_id": user_id,
                "status": "accepted" if accepted else "pending",
                "responded_at": now if accepted else None,
                "created_at": now,
                "updated_at": now,
            }
            result = await conn.execute(_insert_ignoring_duplicates(conn.dialect.name, values))
            created += max(result.rowcount or 0, 0)

        logger.info(
            "RSVP fan-out table=%s entity_id=%s members=%d created=%d",
            scheduled_table,
            scheduled_entity_id,
            len(member_ids),
            created,
        )
        return created

    async def get_entity(self, scheduled_table: str, scheduled_entity_id: uuid.UUID):
        spec = category_for_table(scheduled_table)
        entity = await self._session.get(spec.entity_model, scheduled_entity_id)
        if entity is None:
            raise NotFoundError(f"{spec.label} not found")
        return entity

    async def list_rsvps(self, scheduled_table: str, scheduled_entity_id: uuid.UUID) -> list[EntityRsvp]:
        stmt = (
            select(EntityRsvp)
            .where(EntityRsvp.scheduled_table == scheduled_table)
            .where(EntityRsvp.scheduled_entity_id == scheduled_entity_id)
            .order_by(EntityRsvp.created_at.asc(), EntityRsvp.user_id.asc())
        )
        return list((await self._session.exec(stmt)).all())

    async def respond(
        self,
        scheduled_table: str,
        scheduled_entity_id: uuid.UUID,
        user_id: str,
        status: str,
    ) -> EntityRsvp:
        status = (status or "").strip().lower()
        if status not in RSVP_STATUSES:
            raise ProposalValidationError("status must be one of 'pending', 'accepted' or 'declined'")

        entity = await self.get_entity(scheduled_table, scheduled_entity_id)
        await require_member(self._session, entity.trip_id, user_id)

        rsvp = (
            await self._session.exec(
                select(EntityRsvp)
                .where(EntityRsvp.scheduled_entity_id == scheduled_entity_id)
                .where(EntityRsvp.user_id == user_id)
            )
        ).first()
        if rsvp is None:
            raise NotFoundError("RSVP not found")

        rsvp.status = status
        rsvp.responded_at = None if status == "pending" else utcnow()
        rsvp.updated_at = utcnow()
        self._session.add(rsvp)
        await self._session.flush()
        return rsvp
