from datetime import datetime, timezone

import pytest

from backend.src.db.models import HotelProposal, RestaurantProposal
from backend.src.services.categories import (
    ACTIVITY,
    CATEGORIES,
    FLIGHT,
    HOTEL,
    RESTAURANT,
    category_for_table,
    get_category,
    resolve_address,
    split_location,
)
from backend.src.services.errors import NotFoundError


def test_split_location_shapes():
    assert split_location("500 River Rd, Portland, USA") == ("500 River Rd", "Portland", "USA")
    assert split_location("Suite 4, 500 River Rd, Portland, USA") == ("Suite 4, 500 River Rd", "Portland", "USA")
    assert split_location("Portland, USA") == (None, "Portland", "USA")
    assert split_location("Portland") == (None, "Portland", None)
    assert split_location(" , ") == (None, None, None)
    assert split_location(None) == (None, None, None)


def test_explicit_address_fields_win_over_location():
    assert resolve_address("1 Main St, Salem, USA", "500 River Rd", None, " ") == ("500 River Rd", "Salem", "USA")


def test_hotel_mapping_splits_location_into_address_parts():
    proposal = HotelProposal(
        trip_id=None,
        proposed_by="alice",
        hotel_name="  Riverside Inn ",
        location="500 River Rd, Portland, USA",
        check_in_date=datetime(2026, 6, 1, 15),
    )
    fields = HOTEL.entity_fields(proposal)
    assert fields["hotel_name"] == "Riverside Inn"
    assert (fields["address"], fields["city"], fields["country"]) == ("500 River Rd", "Portland", "USA")
    assert HOTEL.missing_fields(fields) == []


def test_missing_fields_are_reported_in_declared_order():
    proposal = HotelProposal(trip_id=None, proposed_by="alice", city="Portland", address="   ")
    assert HOTEL.missing_fields(HOTEL.entity_fields(proposal)) == ["hotel name", "address", "check-in date"]


def test_restaurant_requires_name_address_and_date():
    proposal = RestaurantProposal(trip_id=None, proposed_by="bob", location="Portland, USA")
    assert RESTAURANT.missing_fields(RESTAURANT.entity_fields(proposal)) == [
        "restaurant name",
        "address",
        "reservation date",
    ]


def test_forbidden_messages_use_category_noun():
    assert HOTEL.scheduled_forbidden_message == "Scheduled stays cannot be proposed"
    assert FLIGHT.scheduled_forbidden_message == "Scheduled flights cannot be proposed"
    assert RESTAURANT.scheduled_forbidden_message == "Scheduled reservations cannot be proposed"
    assert ACTIVITY.scheduled_forbidden_message == "Scheduled activities cannot be proposed"


def test_details_are_filtered_and_made_naive_utc():
    details = HOTEL.proposal_details(
        {
            "hotel_name": "Riverside Inn",
            "status": "confirmed",
            "trip_id": "nope",
            "check_in_date": datetime(2026, 6, 1, 17, tzinfo=timezone.utc),
        }
    )
    assert details == {"hotel_name": "Riverside Inn", "check_in_date": datetime(2026, 6, 1, 17)}


def test_registry_lookups():
    assert set(CATEGORIES) == {"flight", "hotel", "restaurant", "activity"}
    assert get_category("hotel") is HOTEL
    assert category_for_table("activities") is ACTIVITY
    with pytest.raises(NotFoundError):
        get_category("cruise")
    with pytest.raises(NotFoundError):
        category_for_table("cruises")
