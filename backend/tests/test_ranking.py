from datetime import datetime, timedelta, timezone

import pytest

from backend.src.db.models import ProposalVote
from backend.src.services import ranking
from backend.src.services.ranking import (
    VoteSummary,
    average_ranking,
    derive_display_status,
    is_voting_closed,
    normalize_status,
    summarize_votes,
)


NOW = datetime(2026, 5, 1, 12, 0, 0)


def _vote(status="pending", rank=None):
    return ProposalVote(category="hotel", proposal_id=None, user_id="u", status=status, rank=rank)


def test_summarize_votes_counts_and_average():
    summary = summarize_votes(
        [_vote("accepted", 1), _vote("accepted", 2), _vote("declined"), _vote("pending", 3), _vote("pending")]
    )
    assert summary == VoteSummary(
        accepted_count=2, pending_count=2, declined_count=1, total=5, average_ranking=2.0
    )


def test_zero_votes_has_no_average_and_no_top_choice():
    summary = summarize_votes([])
    assert summary.total == 0
    assert summary.average_ranking is None

    display = derive_display_status("active", average_ranking=summary.average_ranking, summary=summary, now=NOW)
    assert display.status == "active"


def test_average_ranking_ignores_unranked_votes():
    assert average_ranking([1, None, 2]) == 1.5
    assert average_ranking([None, None]) is None


def test_elapsed_deadline_on_open_proposal_is_voting_closed():
    display = derive_display_status("active", voting_deadline=NOW - timedelta(minutes=1), now=NOW)
    assert display.status == "voting-closed"
    assert display.label == "Voting Closed"


def test_voting_closed_wins_over_top_choice():
    display = derive_display_status(
        "voting", voting_deadline=NOW - timedelta(days=1), average_ranking=1.0, now=NOW
    )
    assert display.status == "voting-closed"


def test_future_or_missing_deadline_never_closes():
    assert not is_voting_closed("voting", NOW + timedelta(hours=1), now=NOW)
    assert not is_voting_closed("voting", None, now=NOW)


def test_converted_or_confirmed_proposal_is_not_voting_closed():
    past = NOW - timedelta(days=2)
    assert not is_voting_closed("active", past, now=NOW, converted=True)
    assert not is_voting_closed("confirmed", past, now=NOW)


def test_aware_deadline_is_compared_in_utc():
    deadline = datetime(2026, 5, 1, 13, 30, tzinfo=timezone(timedelta(hours=2)))  # 11:30 UTC
    assert is_voting_closed("active", deadline, now=NOW)


def test_top_choice_overrides_category_status():
    assert derive_display_status("confirmed", average_ranking=1.2, now=NOW).status == "top-choice"
    assert derive_display_status("voting", average_ranking=1.5, now=NOW).status == "top-choice"


def test_canceled_proposal_is_never_top_choice():
    display = derive_display_status("cancelled", average_ranking=1.0, now=NOW)
    assert display.status == "canceled"
    assert display.label == "Canceled"


def test_average_above_threshold_keeps_stored_status():
    assert derive_display_status("voting", average_ranking=1.6, now=NOW).status == "voting"


def test_top_choice_threshold_is_configurable(monkeypatch):
    monkeypatch.setattr(ranking.config, "TOP_CHOICE_MAX_AVERAGE_RANK", 2.0)
    assert derive_display_status("voting", average_ranking=1.8, now=NOW).status == "top-choice"


def test_voting_label_appends_vote_counts():
    summary = VoteSummary(accepted_count=2, pending_count=3, total=5)
    display = derive_display_status("voting", summary=summary, now=NOW)
    assert display.status == "voting"
    assert display.label == "2/5 votes"


def test_confirmed_label_has_no_vote_counts():
    summary = VoteSummary(accepted_count=2, total=5)
    assert derive_display_status("confirmed", summary=summary, now=NOW).label == "Confirmed"


@pytest.mark.parametrize(
    "raw, expected",
    [(None, "active"), ("", "active"), ("VOTING", "voting"), ("voting_closed", "voting-closed"), ("Cancelled", "canceled")],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected
