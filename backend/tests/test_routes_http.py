import uuid

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from backend.src.app.main import app
from backend.src.db.models import Hotel


def _client():
    return TestClient(app)


def _as(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


RIVERSIDE = {
    "hotel_name": "Riverside Inn",
    "location": "500 River Rd, Portland, USA",
    "check_in_date": "2026-06-01T15:00:00Z",
    "check_out_date": "2026-06-04T11:00:00Z",
}


@pytest.mark.asyncio
async def test_propose_vote_convert_and_rsvp_flow(session, trip):
    trip_id = str(trip.id)

    with _client() as c:
        r = c.post(f"/api/trips/{trip_id}/proposals/hotels", headers=_as("bob"), json={"details": RIVERSIDE})
        assert r.status_code == 201
        body = r.json()
        assert body["was_created"] is True
        proposal = body["proposal"]
        assert proposal["status"] == "active"
        assert proposal["details"]["hotel_name"] == "Riverside Inn"
        proposal_id = proposal["id"]

        r = c.put(f"/api/proposals/hotels/{proposal_id}/vote", headers=_as("alice"), json={"rank": 1})
        assert r.status_code == 200
        assert r.json()["display_status"] == "top-choice"
        assert r.json()["current_user_vote"]["rank"] == 1

        r = c.get(f"/api/trips/{trip_id}/proposals/hotels", headers=_as("carol"))
        assert r.status_code == 200
        assert [p["id"] for p in r.json()] == [proposal_id]
        assert r.json()[0]["current_user_vote"] is None

        r = c.post(f"/api/proposals/hotels/{proposal_id}/convert", headers=_as("alice"), json={"status": "confirmed"})
        assert r.status_code == 200
        converted = r.json()
        assert converted["proposal"]["status"] == "confirmed"
        assert converted["entity"]["details"]["city"] == "Portland"
        assert converted["entity"]["details"]["address"] == "500 River Rd"
        assert converted["link"]["scheduled_table"] == "hotels"
        assert converted["rsvps_created"] == 3
        entity_id = converted["entity"]["id"]

        r = c.post(f"/api/proposals/hotels/{proposal_id}/convert", headers=_as("bob"), json={"status": "confirmed"})
        assert r.status_code == 409
        assert r.json()["error_code"] == "conflict"
        assert "request_id" in r.json()

        r = c.put(f"/api/scheduled/hotels/{entity_id}/rsvp", headers=_as("bob"), json={"status": "declined"})
        assert r.status_code == 200
        assert r.json()["status"] == "declined"

        r = c.get(f"/api/scheduled/hotels/{entity_id}/rsvps", headers=_as("carol"))
        assert r.status_code == 200
        assert {x["user_id"]: x["status"] for x in r.json()["rsvps"]} == {
            "alice": "accepted",
            "bob": "declined",
            "carol": "pending",
        }

    hotels = (await session.exec(select(Hotel).where(Hotel.trip_id == trip.id))).all()
    assert len(hotels) == 1


@pytest.mark.asyncio
async def test_missing_fields_return_400_with_ordered_list(session, trip):
    with _client() as c:
        r = c.post(
            f"/api/trips/{trip.id}/proposals/hotels",
            headers=_as("bob"),
            json={"details": {"hotel_name": "Riverside Inn"}},
        )
        proposal_id = r.json()["proposal"]["id"]

        r = c.post(f"/api/proposals/hotels/{proposal_id}/convert", headers=_as("alice"), json={"status": "scheduled"})
        assert r.status_code == 400
        body = r.json()
        assert body["error_code"] == "validation_error"
        assert body["missing_fields"] == ["address", "city", "check-in date"]


@pytest.mark.asyncio
async def test_invalid_conversion_status_is_400(session, trip):
    with _client() as c:
        r = c.post(f"/api/trips/{trip.id}/proposals/hotels", headers=_as("bob"), json={"details": RIVERSIDE})
        proposal_id = r.json()["proposal"]["id"]

        r = c.post(f"/api/proposals/hotels/{proposal_id}/convert", headers=_as("bob"), json={"status": "booked"})
        assert r.status_code == 400
        assert r.json()["detail"] == "status must be either 'scheduled' or 'confirmed'"


@pytest.mark.asyncio
async def test_share_saved_item_twice_returns_existing(session, trip):
    with _client() as c:
        r = c.post(f"/api/trips/{trip.id}/saved/hotels", headers=_as("carol"), json={"details": RIVERSIDE})
        assert r.status_code == 201
        assert r.json()["status"] == "tentative"
        saved_id = r.json()["id"]

        first = c.post(f"/api/trips/{trip.id}/proposals/hotels", headers=_as("carol"), json={"saved_item_id": saved_id})
        second = c.post(f"/api/trips/{trip.id}/proposals/hotels", headers=_as("bob"), json={"saved_item_id": saved_id})

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["was_created"] is False
        assert second.json()["proposal"]["id"] == first.json()["proposal"]["id"]
        assert second.json()["proposal"]["saved_entity_id"] == saved_id


@pytest.mark.asyncio
async def test_scheduled_saved_item_is_forbidden(session, trip):
    with _client() as c:
        r = c.post(
            f"/api/trips/{trip.id}/saved/hotels",
            headers=_as("carol"),
            json={"details": RIVERSIDE, "status": "scheduled"},
        )
        saved_id = r.json()["id"]

        r = c.post(f"/api/trips/{trip.id}/proposals/hotels", headers=_as("carol"), json={"saved_item_id": saved_id})
        assert r.status_code == 403
        assert r.json()["detail"] == "Scheduled stays cannot be proposed"


@pytest.mark.asyncio
async def test_missing_user_header_is_401(session, trip):
    with _client() as c:
        r = c.get(f"/api/trips/{trip.id}/proposals/hotels")
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_non_member_is_403_and_unknown_proposal_is_404(session, trip):
    with _client() as c:
        r = c.get(f"/api/trips/{trip.id}/proposals/hotels", headers=_as("mallory"))
        assert r.status_code == 403
        assert r.json()["detail"] == "You are no longer a member of this trip"

        r = c.post(f"/api/proposals/hotels/{uuid.uuid4()}/cancel", headers=_as("alice"))
        assert r.status_code == 404
        assert r.json()["error_code"] == "not_found"

        r = c.get(f"/api/trips/{trip.id}/proposals/cruises", headers=_as("alice"))
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_schema_error_is_reported_generically(session, trip, monkeypatch):
    from backend.src.db.compat import SchemaCompat
    from backend.src.services.errors import SchemaError

    async def _broken(self, session, table):
        raise SchemaError(f"Table {table} does not exist")

    monkeypatch.setattr(SchemaCompat, "ensure", _broken)

    with _client() as c:
        r = c.post(f"/api/trips/{trip.id}/saved/hotels", headers=_as("carol"), json={"details": RIVERSIDE})
        assert r.status_code == 500
        assert r.json()["detail"] == "Internal server error"
        assert r.json()["error_code"] == "internal_server_error"
        assert "hotels" not in r.text
