from datetime import datetime

import pytest
from sqlmodel import select

from backend.src.db.models import EntityRsvp, Hotel, HotelProposal, ProposalScheduleLink, TripMember
from backend.src.services.conversion import ConversionService
from backend.src.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ProposalValidationError,
)
from backend.src.services.proposals import ProposalService
from backend.src.services.saved_items import save_item


RIVERSIDE = {
    "hotel_name": "Riverside Inn",
    "address": "500 River Rd",
    "city": "Portland",
    "country": "USA",
    "check_in_date": datetime(2026, 6, 1, 15),
    "check_out_date": datetime(2026, 6, 4, 11),
}


async def _propose(session, trip, details=RIVERSIDE, user_id="bob"):
    proposal = await ProposalService(session).create_proposal("hotel", trip.id, user_id, dict(details))
    await session.commit()
    return proposal


async def _hotels(session, trip_id):
    return list((await session.exec(select(Hotel).where(Hotel.trip_id == trip_id))).all())


@pytest.mark.asyncio
async def test_convert_riverside_inn_creates_entity_link_and_rsvps(session, trip):
    proposal = await _propose(session, trip)

    result = await ConversionService(session).convert(proposal.id, "confirmed", "alice")
    await session.commit()

    entity = result.entity
    assert entity.hotel_name == "Riverside Inn"
    assert (entity.address, entity.city, entity.country) == ("500 River Rd", "Portland", "USA")
    assert entity.check_in_date == RIVERSIDE["check_in_date"]
    assert entity.check_out_date == RIVERSIDE["check_out_date"]
    assert entity.status == "confirmed"
    assert entity.user_id == "alice"

    link = (
        await session.exec(select(ProposalScheduleLink).where(ProposalScheduleLink.proposal_id == proposal.id))
    ).one()
    assert link.scheduled_table == "hotels"
    assert link.scheduled_entity_id == entity.id
    assert link.source_type == "hotel"
    assert link.trip_id == trip.id

    reloaded = await session.get(HotelProposal, proposal.id)
    assert reloaded.status == "confirmed"

    rsvps = list((await session.exec(select(EntityRsvp).where(EntityRsvp.scheduled_entity_id == entity.id))).all())
    assert {r.user_id: r.status for r in rsvps} == {"alice": "accepted", "bob": "pending", "carol": "pending"}
    assert result.rsvps_created == 3


@pytest.mark.asyncio
async def test_convert_twice_is_conflict_and_creates_one_entity(session, trip):
    proposal = await _propose(session, trip)
    service = ConversionService(session)

    await service.convert(proposal.id, "scheduled", "alice")
    await session.commit()

    with pytest.raises(ConflictError):
        await service.convert(proposal.id, "confirmed", "bob")

    assert len(await _hotels(session, trip.id)) == 1


@pytest.mark.asyncio
async def test_concurrent_link_violation_rolls_back_entity(session, trip, monkeypatch):
    proposal = await _propose(session, trip)
    proposal_id, trip_id = proposal.id, trip.id
    service = ConversionService(session)
    await service.convert(proposal_id, "scheduled", "alice")
    await session.commit()

    # Simulate a second request that passed the pre-check before the first one committed.
    async def _no_link(self, _proposal_id):
        return None

    monkeypatch.setattr(ConversionService, "get_link", _no_link)

    with pytest.raises(ConflictError):
        await service.convert(proposal_id, "confirmed", "bob")

    hotels = await _hotels(session, trip_id)
    assert len(hotels) == 1
    links = list((await session.exec(select(ProposalScheduleLink))).all())
    assert len(links) == 1
    assert links[0].scheduled_entity_id == hotels[0].id


@pytest.mark.asyncio
async def test_missing_fields_fail_in_order_without_writes(session, trip):
    details = {k: v for k, v in RIVERSIDE.items() if k not in ("check_in_date", "address")}
    proposal = await _propose(session, trip, details)

    with pytest.raises(ProposalValidationError) as excinfo:
        await ConversionService(session).convert(proposal.id, "confirmed", "alice")

    assert excinfo.value.missing_fields == ["address", "check-in date"]
    assert "address, check-in date" in excinfo.value.message
    assert await _hotels(session, trip.id) == []
    assert (await session.exec(select(ProposalScheduleLink))).first() is None


@pytest.mark.asyncio
async def test_location_string_fills_address_parts(session, trip):
    details = {
        "hotel_name": "Riverside Inn",
        "location": "500 River Rd, Portland, USA",
        "check_in_date": datetime(2026, 6, 1, 15),
    }
    proposal = await _propose(session, trip, details)

    result = await ConversionService(session).convert(proposal.id, "scheduled", "alice")

    assert (result.entity.address, result.entity.city, result.entity.country) == ("500 River Rd", "Portland", "USA")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["", "voting", "canceled", "done"])
async def test_invalid_requested_status(session, trip, status):
    proposal = await _propose(session, trip)
    with pytest.raises(ProposalValidationError) as excinfo:
        await ConversionService(session).convert(proposal.id, status, "alice")
    assert excinfo.value.message == "status must be either 'scheduled' or 'confirmed'"


@pytest.mark.asyncio
async def test_unknown_proposal_is_not_found(session, trip):
    import uuid

    with pytest.raises(NotFoundError):
        await ConversionService(session).convert(uuid.uuid4(), "scheduled", "alice")


@pytest.mark.asyncio
async def test_non_member_cannot_convert(session, trip):
    proposal = await _propose(session, trip)
    with pytest.raises(ForbiddenError) as excinfo:
        await ConversionService(session).convert(proposal.id, "scheduled", "mallory")
    assert excinfo.value.message == "You are no longer a member of this trip"


@pytest.mark.asyncio
async def test_canceled_proposal_cannot_be_converted(session, trip):
    proposal = await _propose(session, trip)
    await ProposalService(session).cancel_proposal("hotel", proposal.id, "bob")

    with pytest.raises(ConflictError):
        await ConversionService(session).convert(proposal.id, "scheduled", "alice")


@pytest.mark.asyncio
async def test_proposal_sourced_from_scheduled_entity_is_forbidden(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", dict(RIVERSIDE))
    shared = await ConversionService(session).convert_from_saved_item(
        saved.id, trip.id, "carol", category="hotel"
    )
    # The source was booked directly after it was shared.
    saved.status = "scheduled"
    session.add(saved)
    await session.commit()

    with pytest.raises(ForbiddenError) as excinfo:
        await ConversionService(session).convert(shared.proposal.id, "confirmed", "alice")
    assert excinfo.value.message == "Scheduled stays cannot be proposed"


@pytest.mark.asyncio
async def test_converting_shared_saved_item_promotes_it_in_place(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", dict(RIVERSIDE))
    shared = await ConversionService(session).convert_from_saved_item(
        saved.id, trip.id, "carol", {"check_out_date": datetime(2026, 6, 5, 11)}, category="hotel"
    )
    await session.commit()

    result = await ConversionService(session).convert(shared.proposal.id, "confirmed", "alice")

    assert result.entity.id == saved.id
    assert result.entity.status == "confirmed"
    assert result.entity.check_out_date == datetime(2026, 6, 5, 11)
    assert result.link.scheduled_entity_id == saved.id
    assert len(await _hotels(session, trip.id)) == 1


@pytest.mark.asyncio
async def test_share_saved_item_is_idempotent(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", dict(RIVERSIDE))
    service = ConversionService(session)

    first = await service.convert_from_saved_item(saved.id, trip.id, "carol", category="hotel")
    second = await service.convert_from_saved_item(saved.id, trip.id, "bob", category="hotel")

    assert first.was_created is True
    assert second.was_created is False
    assert second.proposal.id == first.proposal.id
    assert first.proposal.hotel_name == "Riverside Inn"
    assert first.proposal.location == "500 River Rd, Portland, USA"
    proposals = list((await session.exec(select(HotelProposal).where(HotelProposal.saved_entity_id == saved.id))).all())
    assert len(proposals) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_share_is_conflict(session, trip, monkeypatch):
    saved = await save_item(session, "hotel", trip.id, "carol", dict(RIVERSIDE))
    saved_id, trip_id = saved.id, trip.id
    # A synthetic proposal written by another request, invisible to this one's lookup.
    session.add(HotelProposal(trip_id=trip_id, proposed_by="bob", hotel_name="Riverside Inn", saved_entity_id=saved_id))
    await session.commit()

    service = ConversionService(session)

    class _Empty:
        def first(self):
            return None

    original_exec = session.exec

    async def _exec(stmt, *args, **kwargs):
        if "saved_entity_id" in str(stmt) and "hotel_proposals" in str(stmt):
            return _Empty()
        return await original_exec(stmt, *args, **kwargs)

    monkeypatch.setattr(session, "exec", _exec)
    with pytest.raises(ConflictError):
        await service.convert_from_saved_item(saved_id, trip_id, "carol", category="hotel")
    monkeypatch.undo()

    proposals = list((await session.exec(select(HotelProposal).where(HotelProposal.saved_entity_id == saved_id))).all())
    assert len(proposals) == 1


@pytest.mark.asyncio
async def test_share_incomplete_saved_item_lists_missing_details(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", {"hotel_name": "Riverside Inn", "city": "Portland"})

    with pytest.raises(ProposalValidationError) as excinfo:
        await ConversionService(session).convert_from_saved_item(saved.id, trip.id, "carol", category="hotel")

    assert excinfo.value.message == (
        "Saved stay is missing required details: address, check-in date. Add them before sharing with the group."
    )


@pytest.mark.asyncio
async def test_share_overrides_fill_missing_details(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", {"hotel_name": "Riverside Inn", "city": "Portland"})

    shared = await ConversionService(session).convert_from_saved_item(
        saved.id,
        trip.id,
        "carol",
        {"address": "500 River Rd", "check_in_date": datetime(2026, 6, 1, 15)},
        category="hotel",
    )

    assert shared.was_created
    assert shared.proposal.address == "500 River Rd"
    assert shared.proposal.saved_entity_id == saved.id


@pytest.mark.asyncio
async def test_scheduled_saved_item_cannot_be_shared(session, trip):
    saved = await save_item(session, "hotel", trip.id, "carol", dict(RIVERSIDE), status="confirmed")

    with pytest.raises(ForbiddenError) as excinfo:
        await ConversionService(session).convert_from_saved_item(saved.id, trip.id, "carol", category="hotel")
    assert excinfo.value.message == "Scheduled stays cannot be proposed"


@pytest.mark.asyncio
async def test_converted_entity_cannot_be_shared_again(session, trip):
    proposal = await _propose(session, trip)
    result = await ConversionService(session).convert(proposal.id, "scheduled", "alice")
    entity_id = result.entity.id
    # Even if its status were later edited back to tentative, the link still marks it as converted.
    result.entity.status = "tentative"
    session.add(result.entity)
    await session.commit()

    with pytest.raises(ForbiddenError):
        await ConversionService(session).convert_from_saved_item(entity_id, trip.id, "bob", category="hotel")


@pytest.mark.asyncio
async def test_saved_item_from_other_trip_is_not_found(session, trip):
    import uuid

    with pytest.raises(NotFoundError) as excinfo:
        await ConversionService(session).convert_from_saved_item(uuid.uuid4(), trip.id, "carol", category="hotel")
    assert excinfo.value.message == "Saved stay not found"


@pytest.mark.asyncio
async def test_fan_out_uses_membership_at_conversion_time(session, trip):
    proposal = await _propose(session, trip)
    session.add(TripMember(trip_id=trip.id, user_id="dave"))
    await session.commit()

    result = await ConversionService(session).convert(proposal.id, "scheduled", "bob")

    assert result.rsvps_created == 4
