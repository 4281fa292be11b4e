from __future__ import annotations

import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.models import Trip, TripMember
from .errors import ForbiddenError, NotFoundError


async def get_trip(session: AsyncSession, trip_id: uuid.UUID) -> Trip:
    trip = await session.get(Trip, trip_id)
    if trip is None:
        raise NotFoundError("Trip not found")
    return trip


async def list_member_ids(session: AsyncSession, trip_id: uuid.UUID) -> list[str]:
    stmt = select(TripMember.user_id).where(TripMember.trip_id == trip_id).order_by(TripMember.joined_at.asc())
    return list((await session.exec(stmt)).all())


async def require_member(session: AsyncSession, trip_id: uuid.UUID, user_id: str) -> None:
    stmt = select(TripMember.id).where(TripMember.trip_id == trip_id).where(TripMember.user_id == user_id)
    if (await session.exec(stmt)).first() is None:
        raise ForbiddenError("You are no longer a member of this trip")
