from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from ..schemas.proposals import RsvpListResponse, RsvpRequest, RsvpResponse
from ...db.models import EntityRsvp
from ...db.session import get_session
from ...services.auth import get_acting_user_id
from ...services.rsvp import RsvpService
from ...services.trips import require_member


router = APIRouter()


def _rsvp_response(rsvp: EntityRsvp) -> RsvpResponse:
    return RsvpResponse(
        user_id=rsvp.user_id,
        status=rsvp.status,
        responded_at=rsvp.responded_at.isoformat() if rsvp.responded_at else None,
    )


@router.get("/api/scheduled/{kind}/{entity_id}/rsvps", response_model=RsvpListResponse)
async def list_rsvps(
    kind: str,
    entity_id: uuid.UUID,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
):
    service = RsvpService(session)
    entity = await service.get_entity(kind, entity_id)
    await require_member(session, entity.trip_id, user_id)
    rsvps = await service.list_rsvps(kind, entity_id)
    return RsvpListResponse(
        scheduled_table=kind,
        scheduled_entity_id=str(entity_id),
        rsvps=[_rsvp_response(r) for r in rsvps],
    )


@router.put("/api/scheduled/{kind}/{entity_id}/rsvp", response_model=RsvpResponse)
async def respond(
    kind: str,
    entity_id: uuid.UUID,
    body: RsvpRequest,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
):
    rsvp = await RsvpService(session).respond(kind, entity_id, user_id, body.status)
    return _rsvp_response(rsvp)
