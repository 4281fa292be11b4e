"""Per-category proposal/scheduled-entity registry.

Each bookable category pairs a proposal table with the scheduled table it is promoted
into, the ordered list of fields a promotion requires, and explicit mapping functions in
both directions (proposal -> scheduled entity, saved entity -> synthetic proposal), plus the
mapping of submitted details onto a directly saved entity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlmodel import SQLModel

from ..db.models import (
    as_naive_utc,
    Activity,
    ActivityProposal,
    Flight,
    FlightProposal,
    Hotel,
    HotelProposal,
    Restaurant,
    RestaurantProposal,
)
from .errors import NotFoundError


# Entity statuses that mark a committed booking rather than a saved item.
SCHEDULED_STATUSES = frozenset({"scheduled", "confirmed"})

_PROPOSAL_BOOKKEEPING = frozenset(
    {
        "id",
        "trip_id",
        "proposed_by",
        "status",
        "voting_deadline",
        "average_ranking",
        "saved_entity_id",
        "created_at",
        "updated_at",
    }
)
_ENTITY_BOOKKEEPING = frozenset({"id", "trip_id", "user_id", "status", "type", "created_at", "updated_at"})


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def split_location(location: Optional[str]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Split "street, city, country" into its parts.

    Two parts are read as (city, country), one part as a city. Anything before the last
    two parts is the street address.
    """
    if not location:
        return None, None, None
    parts = [p.strip() for p in location.split(",") if p.strip()]
    if not parts:
        return None, None, None
    if len(parts) == 1:
        return None, parts[0], None
    if len(parts) == 2:
        return None, parts[0], parts[1]
    return ", ".join(parts[:-2]), parts[-2], parts[-1]


def join_location(*parts: Optional[str]) -> Optional[str]:
    kept = [p.strip() for p in parts if p and p.strip()]
    return ", ".join(kept) or None


def resolve_address(
    location: Optional[str],
    address: Optional[str],
    city: Optional[str],
    country: Optional[str],
) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Explicit address fields win; the combined location only fills the gaps."""
    split_address, split_city, split_country = split_location(_clean(location))
    return (
        _clean(address) or split_address,
        _clean(city) or split_city,
        _clean(country) or split_country,
    )


def _passthrough_details(details: dict[str, Any]) -> dict[str, Any]:
    return dict(details)


def _address_details(details: dict[str, Any]) -> dict[str, Any]:
    """Saved hotels and restaurants store address parts only, never the combined location."""
    address, city, country = resolve_address(
        details.get("location"), details.get("address"), details.get("city"), details.get("country")
    )
    return {**details, "address": address, "city": city, "country": country}


def _flight_entity_fields(p: FlightProposal) -> dict[str, Any]:
    return {
        "flight_number": _clean(p.flight_number),
        "airline": _clean(p.airline),
        "airline_code": _clean(p.airline_code),
        "departure_airport": _clean(p.departure_airport),
        "departure_code": _clean(p.departure_code),
        "departure_time": p.departure_time,
        "arrival_airport": _clean(p.arrival_airport),
        "arrival_code": _clean(p.arrival_code),
        "arrival_time": p.arrival_time,
        "price": p.price,
        "currency": _clean(p.currency),
        "booking_url": _clean(p.booking_url),
    }


def _flight_proposal_fields(f: Flight) -> dict[str, Any]:
    return {
        "flight_number": f.flight_number,
        "airline": f.airline,
        "airline_code": f.airline_code,
        "departure_airport": f.departure_airport,
        "departure_code": f.departure_code,
        "departure_time": f.departure_time,
        "arrival_airport": f.arrival_airport,
        "arrival_code": f.arrival_code,
        "arrival_time": f.arrival_time,
        "price": f.price,
        "currency": f.currency,
        "booking_url": f.booking_url,
    }


def _hotel_entity_fields(p: HotelProposal) -> dict[str, Any]:
    address, city, country = resolve_address(p.location, p.address, p.city, p.country)
    return {
        "hotel_name": _clean(p.hotel_name),
        "address": address,
        "city": city,
        "country": country,
        "check_in_date": p.check_in_date,
        "check_out_date": p.check_out_date,
        "guest_count": p.guest_count,
        "room_count": p.room_count,
        "price_per_night": p.price_per_night,
        "total_price": p.total_price,
        "currency": _clean(p.currency),
        "booking_url": _clean(p.booking_url),
    }


def _hotel_proposal_fields(h: Hotel) -> dict[str, Any]:
    return {
        "hotel_name": h.hotel_name,
        "address": h.address,
        "city": h.city,
        "country": h.country,
        "location": join_location(h.address, h.city, h.country),
        "check_in_date": h.check_in_date,
        "check_out_date": h.check_out_date,
        "guest_count": h.guest_count,
        "room_count": h.room_count,
        "price_per_night": h.price_per_night,
        "total_price": h.total_price,
        "currency": h.currency,
        "booking_url": h.booking_url,
    }


def _restaurant_entity_fields(p: RestaurantProposal) -> dict[str, Any]:
    address, city, country = resolve_address(p.location, p.address, p.city, p.country)
    return {
        "name": _clean(p.name),
        "cuisine": _clean(p.cuisine),
        "address": address,
        "city": city,
        "country": country,
        "reservation_date": p.reservation_date,
        "party_size": p.party_size,
        "price_range": _clean(p.price_range),
        "booking_url": _clean(p.booking_url),
    }


def _restaurant_proposal_fields(r: Restaurant) -> dict[str, Any]:
    return {
        "name": r.name,
        "cuisine": r.cuisine,
        "address": r.address,
        "city": r.city,
        "country": r.country,
        "location": join_location(r.address, r.city, r.country),
        "reservation_date": r.reservation_date,
        "party_size": r.party_size,
        "price_range": r.price_range,
        "booking_url": r.booking_url,
    }


def _activity_entity_fields(p: ActivityProposal) -> dict[str, Any]:
    return {
        "name": _clean(p.name),
        "description": _clean(p.description),
        "location": _clean(p.location),
        "start_time": p.start_time,
        "end_time": p.end_time,
        "cost_per_person": p.cost_per_person,
        "max_capacity": p.max_capacity,
    }


def _activity_proposal_fields(a: Activity) -> dict[str, Any]:
    return {
        "name": a.name,
        "description": a.description,
        "location": a.location,
        "start_time": a.start_time,
        "end_time": a.end_time,
        "cost_per_person": a.cost_per_person,
        "max_capacity": a.max_capacity,
    }


@dataclass(frozen=True)
class CategorySpec:
    key: str
    label: str
    proposal_model: type[SQLModel]
    entity_model: type[SQLModel]
    scheduled_table: str
    # Nouns used in member-facing messages, e.g. "stay" / "stays".
    item_noun: str
    item_noun_plural: str
    required_fields: tuple[tuple[str, str], ...]
    entity_fields: Callable[[Any], dict[str, Any]]
    proposal_fields_from_entity: Callable[[Any], dict[str, Any]]
    # Submitted details -> entity columns, for items saved without a proposal.
    entity_fields_from_details: Callable[[dict[str, Any]], dict[str, Any]]

    @property
    def scheduled_forbidden_message(self) -> str:
        return f"Scheduled {self.item_noun_plural} cannot be proposed"

    def missing_fields(self, fields: dict[str, Any]) -> list[str]:
        """Labels of required fields absent from ``fields``, in declared order."""
        return [label for name, label in self.required_fields if _clean(fields.get(name)) is None]

    def proposal_field_names(self) -> set[str]:
        return set(self.proposal_model.model_fields) - _PROPOSAL_BOOKKEEPING

    def entity_field_names(self) -> set[str]:
        return set(self.entity_model.model_fields) - _ENTITY_BOOKKEEPING

    def proposal_details(self, details: dict[str, Any] | None) -> dict[str, Any]:
        return _filter_details(self.proposal_field_names(), details)

    def entity_details(self, details: dict[str, Any] | None) -> dict[str, Any]:
        return _filter_details(self.entity_field_names(), self.entity_fields_from_details(details or {}))


def _filter_details(allowed: set[str], details: dict[str, Any] | None) -> dict[str, Any]:
    """Keep only descriptive fields; timestamps become naive UTC."""
    out: dict[str, Any] = {}
    for name, value in (details or {}).items():
        if name not in allowed:
            continue
        if isinstance(value, datetime):
            value = as_naive_utc(value)
        out[name] = value
    return out


FLIGHT = CategorySpec(
    key="flight",
    label="Flight",
    proposal_model=FlightProposal,
    entity_model=Flight,
    scheduled_table="flights",
    item_noun="flight",
    item_noun_plural="flights",
    required_fields=(
        ("flight_number", "flight number"),
        ("departure_airport", "departure airport"),
        ("arrival_airport", "arrival airport"),
        ("departure_time", "departure time"),
    ),
    entity_fields=_flight_entity_fields,
    proposal_fields_from_entity=_flight_proposal_fields,
    entity_fields_from_details=_passthrough_details,
)

HOTEL = CategorySpec(
    key="hotel",
    label="Hotel",
    proposal_model=HotelProposal,
    entity_model=Hotel,
    scheduled_table="hotels",
    item_noun="stay",
    item_noun_plural="stays",
    required_fields=(
        ("hotel_name", "hotel name"),
        ("address", "address"),
        ("city", "city"),
        ("check_in_date", "check-in date"),
    ),
    entity_fields=_hotel_entity_fields,
    proposal_fields_from_entity=_hotel_proposal_fields,
    entity_fields_from_details=_address_details,
)

RESTAURANT = CategorySpec(
    key="restaurant",
    label="Restaurant",
    proposal_model=RestaurantProposal,
    entity_model=Restaurant,
    scheduled_table="restaurants",
    item_noun="reservation",
    item_noun_plural="reservations",
    required_fields=(
        ("name", "restaurant name"),
        ("address", "address"),
        ("reservation_date", "reservation date"),
    ),
    entity_fields=_restaurant_entity_fields,
    proposal_fields_from_entity=_restaurant_proposal_fields,
    entity_fields_from_details=_address_details,
)

ACTIVITY = CategorySpec(
    key="activity",
    label="Activity",
    proposal_model=ActivityProposal,
    entity_model=Activity,
    scheduled_table="activities",
    item_noun="activity",
    item_noun_plural="activities",
    required_fields=(
        ("name", "activity name"),
        ("start_time", "start time"),
    ),
    entity_fields=_activity_entity_fields,
    proposal_fields_from_entity=_activity_proposal_fields,
    entity_fields_from_details=_passthrough_details,
)

CATEGORIES: dict[str, CategorySpec] = {spec.key: spec for spec in (FLIGHT, HOTEL, RESTAURANT, ACTIVITY)}
_BY_TABLE: dict[str, CategorySpec] = {spec.scheduled_table: spec for spec in CATEGORIES.values()}


def get_category(key: str) -> CategorySpec:
    spec = CATEGORIES.get(key)
    if spec is None:
        raise NotFoundError(f"Unknown category '{key}'")
    return spec


def category_for_table(scheduled_table: str) -> CategorySpec:
    spec = _BY_TABLE.get(scheduled_table)
    if spec is None:
        raise NotFoundError(f"Unknown category '{scheduled_table}'")
    return spec
