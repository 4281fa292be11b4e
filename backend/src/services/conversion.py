from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.compat import SchemaCompat
from ..db.models import ProposalScheduleLink, as_naive_utc, utcnow
from .categories import CATEGORIES, SCHEDULED_STATUSES, CategorySpec, get_category
from .errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ProposalValidationError,
)
from .ranking import normalize_status
from .rsvp import RsvpService
from .trips import require_member

logger = logging.getLogger(__name__)

CONVERSION_STATUSES = ("scheduled", "confirmed")


@dataclass
class ConversionResult:
    category: CategorySpec
    proposal: Any
    entity: Any
    link: ProposalScheduleLink
    rsvps_created: int


@dataclass
class SharedSavedItem:
    category: CategorySpec
    proposal: Any
    was_created: bool
    saved_entity_id: uuid.UUID


class ConversionService:
    """Promotes proposals into scheduled entities, and saved items into proposals.

    A conversion writes the scheduled entity, the schedule link and the proposal status in
    one unit of work. The unique ``proposal_id`` on the link table is what makes a second,
    concurrent conversion fail: the loser's writes are rolled back and it gets a Conflict.
    """

    def __init__(self, session: AsyncSession, *, schema: Optional[SchemaCompat] = None):
        self._session = session
        self._schema = schema

    async def find_proposal(self, proposal_id: uuid.UUID, category: Optional[str] = None) -> tuple[CategorySpec, Any]:
        specs = [get_category(category)] if category else list(CATEGORIES.values())
        for spec in specs:
            await self._ensure(spec.proposal_model.__tablename__)
            proposal = await self._session.get(spec.proposal_model, proposal_id)
            if proposal is not None:
                return spec, proposal
        label = specs[0].label if len(specs) == 1 else ""
        raise NotFoundError(f"{label} proposal not found".strip().capitalize())

    async def _ensure(self, table: str) -> None:
        if self._schema is not None:
            await self._schema.ensure(self._session, table)

    async def get_link(self, proposal_id: uuid.UUID) -> Optional[ProposalScheduleLink]:
        stmt = select(ProposalScheduleLink).where(ProposalScheduleLink.proposal_id == proposal_id)
        return (await self._session.exec(stmt)).first()

    async def _entity_is_link_target(self, entity_id: uuid.UUID) -> bool:
        stmt = select(ProposalScheduleLink.id).where(ProposalScheduleLink.scheduled_entity_id == entity_id)
        return (await self._session.exec(stmt)).first() is not None

    async def convert(
        self,
        proposal_id: uuid.UUID,
        requested_status: str,
        acting_user_id: str,
        *,
        category: Optional[str] = None,
    ) -> ConversionResult:
        status = (requested_status or "").strip().lower()
        if status not in CONVERSION_STATUSES:
            raise ProposalValidationError("status must be either 'scheduled' or 'confirmed'")

        spec, proposal = await self.find_proposal(proposal_id, category)
        trip_id = proposal.trip_id
        await require_member(self._session, trip_id, acting_user_id)

        if await self.get_link(proposal.id) is not None:
            raise ConflictError(f"{spec.label} proposal has already been converted")
        if normalize_status(proposal.status) == "canceled":
            raise ConflictError("Canceled proposals cannot be converted")

        await self._ensure(spec.scheduled_table)
        source = None
        if proposal.saved_entity_id is not None:
            source = await self._session.get(spec.entity_model, proposal.saved_entity_id)
            if source is not None and normalize_status(source.status) in SCHEDULED_STATUSES:
                raise ForbiddenError(spec.scheduled_forbidden_message)

        fields = spec.entity_fields(proposal)
        missing = spec.missing_fields(fields)
        if missing:
            raise ProposalValidationError(
                f"{spec.label} proposal is missing required details: {', '.join(missing)}.",
                missing_fields=missing,
            )

        now = utcnow()
        try:
            if source is None:
                entity = spec.entity_model(
                    trip_id=trip_id,
                    user_id=acting_user_id,
                    status=status,
                    created_at=now,
                    updated_at=now,
                    **fields,
                )
            else:
                # A shared saved item is promoted in place rather than duplicated.
                entity = source
                for name, value in fields.items():
                    if value is not None:
                        setattr(entity, name, value)
                entity.status = status
                entity.updated_at = now
            self._session.add(entity)
            await self._session.flush()

            link = ProposalScheduleLink(
                source_type=spec.key,
                proposal_id=proposal.id,
                scheduled_table=spec.scheduled_table,
                scheduled_entity_id=entity.id,
                trip_id=trip_id,
                created_at=now,
            )
            proposal.status = status
            proposal.updated_at = now
            self._session.add(link)
            self._session.add(proposal)
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            logger.info("Conversion conflict category=%s proposal_id=%s", spec.key, proposal_id)
            raise ConflictError(f"{spec.label} proposal has already been converted") from None
        except Exception:
            await self._session.rollback()
            raise

        rsvps_created = await RsvpService(self._session).create_rsvps(
            spec.scheduled_table, entity.id, trip_id, acting_user_id
        )
        logger.info(
            "Converted proposal category=%s proposal_id=%s entity_id=%s status=%s",
            spec.key,
            proposal_id,
            entity.id,
            status,
        )
        return ConversionResult(
            category=spec,
            proposal=proposal,
            entity=entity,
            link=link,
            rsvps_created=rsvps_created,
        )

    async def convert_from_saved_item(
        self,
        saved_item_id: uuid.UUID,
        trip_id: uuid.UUID,
        acting_user_id: str,
        override_details: Optional[dict[str, Any]] = None,
        *,
        category: str,
        voting_deadline: Optional[datetime] = None,
    ) -> SharedSavedItem:
        """Wrap an item a member saved directly into a proposal the group can vote on.

        Calling this again for the same saved item returns the existing proposal.
        """
        spec = get_category(category)
        await require_member(self._session, trip_id, acting_user_id)
        await self._ensure(spec.scheduled_table)
        await self._ensure(spec.proposal_model.__tablename__)

        entity = await self._session.get(spec.entity_model, saved_item_id)
        if entity is None or entity.trip_id != trip_id:
            raise NotFoundError(f"Saved {spec.item_noun} not found")
        if normalize_status(entity.status) in SCHEDULED_STATUSES or await self._entity_is_link_target(entity.id):
            raise ForbiddenError(spec.scheduled_forbidden_message)

        existing = (
            await self._session.exec(
                select(spec.proposal_model).where(spec.proposal_model.saved_entity_id == entity.id)
            )
        ).first()
        if existing is not None:
            return SharedSavedItem(category=spec, proposal=existing, was_created=False, saved_entity_id=entity.id)

        fields = spec.proposal_fields_from_entity(entity)
        for name, value in spec.proposal_details(override_details).items():
            if value is not None:
                fields[name] = value

        deadline = as_naive_utc(voting_deadline)
        now = utcnow()
        proposal = spec.proposal_model(
            trip_id=trip_id,
            proposed_by=acting_user_id,
            status="voting" if deadline else "active",
            voting_deadline=deadline,
            saved_entity_id=entity.id,
            created_at=now,
            updated_at=now,
            **fields,
        )
        missing = spec.missing_fields(spec.entity_fields(proposal))
        if missing:
            raise ProposalValidationError(
                f"Saved {spec.item_noun} is missing required details: {', '.join(missing)}. "
                "Add them before sharing with the group.",
                missing_fields=missing,
            )

        try:
            self._session.add(proposal)
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            logger.info("Duplicate share category=%s saved_item_id=%s", spec.key, saved_item_id)
            raise ConflictError(f"This saved {spec.item_noun} has already been shared with the group") from None

        logger.info(
            "Shared saved item category=%s saved_item_id=%s proposal_id=%s",
            spec.key,
            saved_item_id,
            proposal.id,
        )
        return SharedSavedItem(category=spec, proposal=proposal, was_created=True, saved_entity_id=entity.id)
