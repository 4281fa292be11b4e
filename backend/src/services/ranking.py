from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .. import config
from ..db.models import ProposalVote, as_naive_utc, utcnow


VOTING_STATUSES = frozenset({"active", "voting"})

STATUS_LABELS: dict[str, str] = {
    "active": "Active Voting",
    "voting": "Voting",
    "voting-closed": "Voting Closed",
    "top-choice": "Top Choice",
    "scheduled": "Scheduled",
    "confirmed": "Confirmed",
    "canceled": "Canceled",
}


@dataclass(frozen=True)
class VoteSummary:
    accepted_count: int = 0
    pending_count: int = 0
    declined_count: int = 0
    total: int = 0
    average_ranking: Optional[float] = None


@dataclass(frozen=True)
class DisplayStatus:
    status: str
    label: str


def normalize_status(status: Optional[str]) -> str:
    value = (status or "active").strip().lower().replace("_", "-")
    if value == "cancelled":
        return "canceled"
    return value or "active"


def average_ranking(ranks: Iterable[Optional[int]]) -> Optional[float]:
    values = [r for r in ranks if r is not None]
    if not values:
        return None
    return sum(values) / len(values)


def summarize_votes(votes: Iterable[ProposalVote]) -> VoteSummary:
    votes = list(votes)
    statuses = [normalize_status(v.status) for v in votes]
    return VoteSummary(
        accepted_count=statuses.count("accepted"),
        pending_count=statuses.count("pending"),
        declined_count=statuses.count("declined"),
        total=len(votes),
        average_ranking=average_ranking(v.rank for v in votes),
    )


def is_voting_closed(
    status: Optional[str],
    voting_deadline: Optional[datetime],
    *,
    now: Optional[datetime] = None,
    converted: bool = False,
) -> bool:
    if voting_deadline is None or converted:
        return False
    if normalize_status(status) not in VOTING_STATUSES:
        return False
    now = as_naive_utc(now) or utcnow()
    return as_naive_utc(voting_deadline) < now


def derive_display_status(
    status: Optional[str],
    *,
    voting_deadline: Optional[datetime] = None,
    average_ranking: Optional[float] = None,
    summary: Optional[VoteSummary] = None,
    now: Optional[datetime] = None,
    converted: bool = False,
) -> DisplayStatus:
    """Compute the status a member sees; never mutates the stored status.

    An elapsed deadline on an open proposal wins, then a strong consensus ranking
    ("top choice"), then the stored status. Several proposals may be top choice at once.
    """
    normalized = normalize_status(status)

    if is_voting_closed(normalized, voting_deadline, now=now, converted=converted):
        return DisplayStatus("voting-closed", STATUS_LABELS["voting-closed"])

    if (
        average_ranking is not None
        and average_ranking <= config.TOP_CHOICE_MAX_AVERAGE_RANK
        and normalized != "canceled"
    ):
        return DisplayStatus("top-choice", STATUS_LABELS["top-choice"])

    label = STATUS_LABELS.get(normalized, normalized)
    if normalized in VOTING_STATUSES and summary is not None and summary.accepted_count and summary.total:
        label = f"{summary.accepted_count}/{summary.total} votes"
    return DisplayStatus(normalized, label)
