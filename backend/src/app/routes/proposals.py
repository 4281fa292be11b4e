from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
import uuid

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from ..schemas.proposals import (
    DETAILS_SCHEMAS,
    ConvertRequest,
    ConvertResponse,
    CreateProposalRequest,
    CreateProposalResponse,
    DeadlineRequest,
    LinkResponse,
    ProposalResponse,
    SaveItemRequest,
    ScheduledEntityResponse,
    VoteRequest,
    VoteResponse,
    VoteSummaryResponse,
)
from ...db.compat import SchemaCompat
from ...db.models import ProposalScheduleLink
from ...db.session import get_session
from ...services.auth import get_acting_user_id
from ...services.categories import CategorySpec, category_for_table
from ...services.conversion import ConversionService
from ...services.errors import ProposalValidationError
from ...services.proposals import ProposalService, ProposalView
from ...services.saved_items import save_item


router = APIRouter()


def get_schema_compat(request: Request) -> Optional[SchemaCompat]:
    return getattr(request.app.state, "schema_compat", None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ProposalValidationError(f"Invalid {label}") from None


def _parse_details(spec: CategorySpec, raw: dict[str, Any]) -> dict[str, Any]:
    try:
        parsed = DETAILS_SCHEMAS[spec.key].model_validate(raw or {})
    except ValidationError:
        raise ProposalValidationError(f"Invalid {spec.item_noun} details") from None
    return parsed.model_dump(exclude_none=True)


def _link_response(link: ProposalScheduleLink) -> LinkResponse:
    return LinkResponse(
        scheduled_table=link.scheduled_table,
        scheduled_entity_id=str(link.scheduled_entity_id),
        created_at=_iso(link.created_at),
    )


def _proposal_response(view: ProposalView) -> ProposalResponse:
    spec, p = view.category, view.proposal
    vote = view.current_user_vote
    return ProposalResponse(
        id=str(p.id),
        category=spec.key,
        trip_id=str(p.trip_id),
        proposed_by=p.proposed_by,
        status=p.status,
        display_status=view.display.status,
        display_label=view.display.label,
        voting_deadline=_iso(p.voting_deadline),
        average_ranking=p.average_ranking,
        saved_entity_id=str(p.saved_entity_id) if p.saved_entity_id else None,
        details={name: getattr(p, name) for name in sorted(spec.proposal_field_names())},
        votes=VoteSummaryResponse(
            accepted_count=view.summary.accepted_count,
            pending_count=view.summary.pending_count,
            declined_count=view.summary.declined_count,
            total=view.summary.total,
            average_ranking=view.summary.average_ranking,
        ),
        current_user_vote=(
            VoteResponse(user_id=vote.user_id, status=vote.status, rank=vote.rank, updated_at=_iso(vote.updated_at))
            if vote is not None
            else None
        ),
        link=_link_response(view.link) if view.link is not None else None,
        created_at=_iso(p.created_at),
        updated_at=_iso(p.updated_at),
    )


def _entity_response(spec: CategorySpec, entity: Any) -> ScheduledEntityResponse:
    return ScheduledEntityResponse(
        id=str(entity.id),
        category=spec.key,
        trip_id=str(entity.trip_id),
        user_id=entity.user_id,
        status=entity.status,
        details={name: getattr(entity, name) for name in sorted(spec.entity_field_names())},
        created_at=_iso(entity.created_at),
    )


@router.post("/api/trips/{trip_id}/proposals/{kind}", response_model=CreateProposalResponse)
async def create_proposal(
    trip_id: uuid.UUID,
    kind: str,
    body: CreateProposalRequest,
    response: Response,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    """Propose an option to the group, or share an item already saved to the trip."""
    spec = category_for_table(kind)
    details = _parse_details(spec, body.details)

    if body.saved_item_id:
        shared = await ConversionService(session, schema=schema).convert_from_saved_item(
            _parse_uuid(body.saved_item_id, "saved_item_id"),
            trip_id,
            user_id,
            details,
            category=spec.key,
            voting_deadline=body.voting_deadline,
        )
        proposal, was_created = shared.proposal, shared.was_created
    else:
        proposal = await ProposalService(session, schema=schema).create_proposal(
            spec.key, trip_id, user_id, details, voting_deadline=body.voting_deadline
        )
        was_created = True

    view = await ProposalService(session).get_proposal_view(spec.key, proposal.id, user_id)
    response.status_code = 201 if was_created else 200
    return CreateProposalResponse(proposal=_proposal_response(view), was_created=was_created)


@router.get("/api/trips/{trip_id}/proposals/{kind}", response_model=List[ProposalResponse])
async def list_proposals(
    trip_id: uuid.UUID,
    kind: str,
    mine_only: bool = Query(default=False),
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
):
    spec = category_for_table(kind)
    views = await ProposalService(session).list_proposals(spec.key, trip_id, user_id, mine_only=mine_only)
    return [_proposal_response(v) for v in views]


@router.put("/api/proposals/{kind}/{proposal_id}/vote", response_model=ProposalResponse)
async def cast_vote(
    kind: str,
    proposal_id: uuid.UUID,
    body: VoteRequest,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    spec = category_for_table(kind)
    service = ProposalService(session, schema=schema)
    await service.cast_vote(spec.key, proposal_id, user_id, status=body.status, rank=body.rank)
    return _proposal_response(await service.get_proposal_view(spec.key, proposal_id, user_id))


@router.put("/api/proposals/{kind}/{proposal_id}/deadline", response_model=ProposalResponse)
async def set_voting_deadline(
    kind: str,
    proposal_id: uuid.UUID,
    body: DeadlineRequest,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    spec = category_for_table(kind)
    service = ProposalService(session, schema=schema)
    await service.set_voting_deadline(spec.key, proposal_id, user_id, body.voting_deadline)
    return _proposal_response(await service.get_proposal_view(spec.key, proposal_id, user_id))


@router.post("/api/proposals/{kind}/{proposal_id}/convert", response_model=ConvertResponse)
async def convert_proposal(
    kind: str,
    proposal_id: uuid.UUID,
    body: ConvertRequest,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    """Promote a proposal into the trip's schedule and open RSVPs for the group."""
    spec = category_for_table(kind)
    result = await ConversionService(session, schema=schema).convert(
        proposal_id, body.status, user_id, category=spec.key
    )
    view = await ProposalService(session).get_proposal_view(spec.key, proposal_id, user_id)
    return ConvertResponse(
        proposal=_proposal_response(view),
        entity=_entity_response(spec, result.entity),
        link=_link_response(result.link),
        rsvps_created=result.rsvps_created,
    )


@router.post("/api/proposals/{kind}/{proposal_id}/cancel", response_model=ProposalResponse)
async def cancel_proposal(
    kind: str,
    proposal_id: uuid.UUID,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    spec = category_for_table(kind)
    service = ProposalService(session, schema=schema)
    await service.cancel_proposal(spec.key, proposal_id, user_id)
    return _proposal_response(await service.get_proposal_view(spec.key, proposal_id, user_id))


@router.post("/api/trips/{trip_id}/saved/{kind}", response_model=ScheduledEntityResponse, status_code=201)
async def save_trip_item(
    trip_id: uuid.UUID,
    kind: str,
    body: SaveItemRequest,
    user_id: str = Depends(get_acting_user_id),
    session: AsyncSession = Depends(get_session),
    schema: Optional[SchemaCompat] = Depends(get_schema_compat),
):
    spec = category_for_table(kind)
    entity = await save_item(
        session,
        spec.key,
        trip_id,
        user_id,
        _parse_details(spec, body.details),
        status=body.status,
        schema=schema,
    )
    return _entity_response(spec, entity)
