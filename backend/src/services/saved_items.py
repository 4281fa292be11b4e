from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.compat import SchemaCompat
from ..db.models import utcnow
from .categories import get_category
from .errors import ProposalValidationError
from .ranking import normalize_status
from .rsvp import RsvpService
from .trips import require_member

logger = logging.getLogger(__name__)

SAVED_ITEM_STATUSES = ("tentative", "scheduled", "confirmed")


async def save_item(
    session: AsyncSession,
    category: str,
    trip_id: uuid.UUID,
    user_id: str,
    details: dict[str, Any],
    *,
    status: str = "tentative",
    schema: Optional[SchemaCompat] = None,
) -> Any:
    """Write an item straight into a trip's scheduled table, bypassing a group vote.

    Tentative items can later be shared as proposals. Items saved as scheduled or
    confirmed are final and get RSVP rows right away.
    """
    spec = get_category(category)
    status = normalize_status(status)
    if status not in SAVED_ITEM_STATUSES:
        raise ProposalValidationError("status must be one of 'tentative', 'scheduled' or 'confirmed'")
    await require_member(session, trip_id, user_id)

    if schema is not None:
        await schema.ensure(session, spec.scheduled_table)

    now = utcnow()
    entity = spec.entity_model(
        trip_id=trip_id,
        user_id=user_id,
        status=status,
        created_at=now,
        updated_at=now,
        **spec.entity_details(details),
    )
    session.add(entity)
    await session.flush()

    if status != "tentative":
        await RsvpService(session).create_rsvps(spec.scheduled_table, entity.id, trip_id, user_id)
    logger.info("Saved item category=%s entity_id=%s status=%s", spec.key, entity.id, status)
    return entity
