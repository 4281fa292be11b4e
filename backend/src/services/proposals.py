from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.compat import SchemaCompat
from ..db.models import ProposalScheduleLink, ProposalVote, as_naive_utc, utcnow
from .categories import CategorySpec, get_category
from .errors import ConflictError, ForbiddenError, NotFoundError, ProposalValidationError
from .ranking import (
    DisplayStatus,
    VoteSummary,
    average_ranking,
    derive_display_status,
    normalize_status,
    summarize_votes,
)
from .trips import require_member

logger = logging.getLogger(__name__)

VOTE_STATUSES = ("pending", "accepted", "declined")
_CLOSED_STATUSES = frozenset({"scheduled", "confirmed", "canceled"})


@dataclass
class ProposalView:
    """A proposal merged with everything a member needs to render it."""

    category: CategorySpec
    proposal: Any
    votes: list[ProposalVote]
    summary: VoteSummary
    display: DisplayStatus
    current_user_vote: Optional[ProposalVote]
    link: Optional[ProposalScheduleLink]


class ProposalService:
    def __init__(self, session: AsyncSession, *, schema: Optional[SchemaCompat] = None):
        self._session = session
        self._schema = schema

    async def _ensure_writable(self, spec: CategorySpec) -> None:
        if self._schema is not None:
            await self._schema.ensure(self._session, spec.proposal_model.__tablename__)

    async def _load(self, spec: CategorySpec, proposal_id: uuid.UUID) -> Any:
        proposal = await self._session.get(spec.proposal_model, proposal_id)
        if proposal is None:
            raise NotFoundError(f"{spec.label} proposal not found")
        return proposal

    async def _votes(self, proposal_id: uuid.UUID) -> list[ProposalVote]:
        stmt = select(ProposalVote).where(ProposalVote.proposal_id == proposal_id).order_by(ProposalVote.created_at.asc())
        return list((await self._session.exec(stmt)).all())

    async def _is_converted(self, proposal_id: uuid.UUID) -> bool:
        stmt = select(ProposalScheduleLink.id).where(ProposalScheduleLink.proposal_id == proposal_id)
        return (await self._session.exec(stmt)).first() is not None

    async def create_proposal(
        self,
        category: str,
        trip_id: uuid.UUID,
        proposed_by: str,
        details: dict[str, Any],
        voting_deadline: Optional[datetime] = None,
    ) -> Any:
        spec = get_category(category)
        await require_member(self._session, trip_id, proposed_by)
        await self._ensure_writable(spec)

        deadline = as_naive_utc(voting_deadline)
        now = utcnow()
        proposal = spec.proposal_model(
            trip_id=trip_id,
            proposed_by=proposed_by,
            status="voting" if deadline else "active",
            voting_deadline=deadline,
            created_at=now,
            updated_at=now,
            **spec.proposal_details(details),
        )
        self._session.add(proposal)
        await self._session.flush()
        logger.info("Created proposal category=%s proposal_id=%s trip_id=%s", spec.key, proposal.id, trip_id)
        return proposal

    async def cast_vote(
        self,
        category: str,
        proposal_id: uuid.UUID,
        user_id: str,
        *,
        status: Optional[str] = None,
        rank: Optional[int] = None,
    ) -> ProposalVote:
        """Record (or update) a member's vote and refresh the stored average ranking."""
        spec = get_category(category)
        if status is not None:
            status = status.strip().lower()
            if status not in VOTE_STATUSES:
                raise ProposalValidationError("status must be one of 'pending', 'accepted' or 'declined'")
        if rank is not None and (isinstance(rank, bool) or not isinstance(rank, int) or rank < 1):
            raise ProposalValidationError("rank must be a positive integer")

        await self._ensure_writable(spec)
        proposal = await self._load(spec, proposal_id)
        await require_member(self._session, proposal.trip_id, user_id)
        if normalize_status(proposal.status) in _CLOSED_STATUSES or await self._is_converted(proposal.id):
            raise ConflictError("Voting is closed for this proposal")

        votes = await self._votes(proposal.id)
        vote = next((v for v in votes if v.user_id == user_id), None)
        now = utcnow()
        if vote is None:
            vote = ProposalVote(
                category=spec.key,
                proposal_id=proposal.id,
                user_id=user_id,
                status=status or ("accepted" if rank is not None else "pending"),
                rank=rank,
                created_at=now,
                updated_at=now,
            )
            votes.append(vote)
        else:
            if status is not None:
                vote.status = status
            if rank is not None:
                vote.rank = rank
            vote.updated_at = now
        self._session.add(vote)

        proposal.average_ranking = average_ranking(v.rank for v in votes)
        if normalize_status(proposal.status) == "active":
            proposal.status = "voting"
        proposal.updated_at = now
        self._session.add(proposal)
        await self._session.flush()
        return vote

    async def set_voting_deadline(
        self,
        category: str,
        proposal_id: uuid.UUID,
        user_id: str,
        voting_deadline: Optional[datetime],
    ) -> Any:
        spec = get_category(category)
        await self._ensure_writable(spec)
        proposal = await self._load(spec, proposal_id)
        if proposal.proposed_by != user_id:
            raise ForbiddenError("Only the member who proposed this can change its voting deadline")
        if normalize_status(proposal.status) in _CLOSED_STATUSES:
            raise ConflictError("Voting is closed for this proposal")

        proposal.voting_deadline = as_naive_utc(voting_deadline)
        if proposal.voting_deadline is not None and normalize_status(proposal.status) == "active":
            proposal.status = "voting"
        proposal.updated_at = utcnow()
        self._session.add(proposal)
        await self._session.flush()
        return proposal

    async def cancel_proposal(self, category: str, proposal_id: uuid.UUID, user_id: str) -> Any:
        spec = get_category(category)
        await self._ensure_writable(spec)
        proposal = await self._load(spec, proposal_id)
        if proposal.proposed_by != user_id:
            raise ForbiddenError("Only the member who proposed this can cancel it")

        # A schedule link, if any, is left in place.
        proposal.status = "canceled"
        proposal.updated_at = utcnow()
        self._session.add(proposal)
        await self._session.flush()
        logger.info("Canceled proposal category=%s proposal_id=%s", spec.key, proposal.id)
        return proposal

    async def _view(
        self,
        spec: CategorySpec,
        proposal: Any,
        acting_user_id: str,
        votes: list[ProposalVote],
        link: Optional[ProposalScheduleLink],
        now: datetime,
    ) -> ProposalView:
        summary = summarize_votes(votes)
        display = derive_display_status(
            proposal.status,
            voting_deadline=proposal.voting_deadline,
            average_ranking=summary.average_ranking,
            summary=summary,
            now=now,
            converted=link is not None,
        )
        return ProposalView(
            category=spec,
            proposal=proposal,
            votes=votes,
            summary=summary,
            display=display,
            current_user_vote=next((v for v in votes if v.user_id == acting_user_id), None),
            link=link,
        )

    async def get_proposal_view(
        self,
        category: str,
        proposal_id: uuid.UUID,
        acting_user_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> ProposalView:
        spec = get_category(category)
        proposal = await self._load(spec, proposal_id)
        await require_member(self._session, proposal.trip_id, acting_user_id)
        link = (
            await self._session.exec(
                select(ProposalScheduleLink).where(ProposalScheduleLink.proposal_id == proposal.id)
            )
        ).first()
        return await self._view(spec, proposal, acting_user_id, await self._votes(proposal.id), link, now or utcnow())

    async def list_proposals(
        self,
        category: str,
        trip_id: uuid.UUID,
        acting_user_id: str,
        *,
        mine_only: bool = False,
        now: Optional[datetime] = None,
    ) -> list[ProposalView]:
        spec = get_category(category)
        await require_member(self._session, trip_id, acting_user_id)

        model = spec.proposal_model
        stmt = select(model).where(model.trip_id == trip_id).order_by(model.created_at.desc())
        if mine_only:
            stmt = stmt.where(model.proposed_by == acting_user_id)
        proposals = list((await self._session.exec(stmt)).all())
        if not proposals:
            return []

        ids = [p.id for p in proposals]
        votes_by_proposal: dict[uuid.UUID, list[ProposalVote]] = {pid: [] for pid in ids}
        vote_rows = await self._session.exec(
            select(ProposalVote).where(ProposalVote.proposal_id.in_(ids)).order_by(ProposalVote.created_at.asc())
        )
        for vote in vote_rows.all():
            votes_by_proposal[vote.proposal_id].append(vote)
        link_rows = await self._session.exec(
            select(ProposalScheduleLink).where(ProposalScheduleLink.proposal_id.in_(ids))
        )
        links = {link.proposal_id: link for link in link_rows.all()}

        now = now or utcnow()
        return [
            await self._view(spec, p, acting_user_id, votes_by_proposal[p.id], links.get(p.id), now)
            for p in proposals
        ]
