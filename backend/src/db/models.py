from __future__ import annotations

from datetime import datetime, timezone
import uuid
from typing import Optional

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC; aware values are converted first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Trip(SQLModel, table=True):
    __tablename__ = "trips"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    destination: Optional[str] = Field(default=None)
    created_by: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)


class TripMember(SQLModel, table=True):
    __tablename__ = "trip_members"
    __table_args__ = (UniqueConstraint("trip_id", "user_id", name="uq_trip_members_trip_user"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    user_id: str = Field(index=True)
    role: str = Field(default="member")
    joined_at: datetime = Field(default_factory=utcnow)


# Scheduled entities. `status` is one of tentative|scheduled|confirmed|canceled; a
# "tentative" row is an item a member saved directly without a group vote.


class Flight(SQLModel, table=True):
    __tablename__ = "flights"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    user_id: str = Field(index=True)
    flight_number: Optional[str] = Field(default=None)
    airline: Optional[str] = Field(default=None)
    airline_code: Optional[str] = Field(default=None)
    departure_airport: Optional[str] = Field(default=None)
    departure_code: Optional[str] = Field(default=None)
    departure_time: Optional[datetime] = Field(default=None)
    arrival_airport: Optional[str] = Field(default=None)
    arrival_code: Optional[str] = Field(default=None)
    arrival_time: Optional[datetime] = Field(default=None)
    price: Optional[float] = Field(default=None)
    currency: Optional[str] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)
    status: str = Field(default="scheduled", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Hotel(SQLModel, table=True):
    __tablename__ = "hotels"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    user_id: str = Field(index=True)
    hotel_name: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    country: Optional[str] = Field(default=None)
    check_in_date: Optional[datetime] = Field(default=None)
    check_out_date: Optional[datetime] = Field(default=None)
    guest_count: Optional[int] = Field(default=None)
    room_count: Optional[int] = Field(default=None)
    price_per_night: Optional[float] = Field(default=None)
    total_price: Optional[float] = Field(default=None)
    currency: Optional[str] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)
    status: str = Field(default="scheduled", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Restaurant(SQLModel, table=True):
    __tablename__ = "restaurants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    user_id: str = Field(index=True)
    name: Optional[str] = Field(default=None)
    cuisine: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    country: Optional[str] = Field(default=None)
    reservation_date: Optional[datetime] = Field(default=None)
    party_size: Optional[int] = Field(default=None)
    price_range: Optional[str] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)
    status: str = Field(default="scheduled", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Activity(SQLModel, table=True):
    __tablename__ = "activities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    user_id: str = Field(index=True)
    type: str = Field(default="SCHEDULED")  # 'SCHEDULED'|'PROPOSE'
    name: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    location: Optional[str] = Field(default=None)
    start_time: Optional[datetime] = Field(default=None, index=True)
    end_time: Optional[datetime] = Field(default=None)
    cost_per_person: Optional[float] = Field(default=None)
    max_capacity: Optional[int] = Field(default=None)
    status: str = Field(default="scheduled", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# Proposals. Stored status is one of active|voting|scheduled|confirmed|canceled;
# "voting-closed" and "top-choice" are derived on read and never persisted.


class ProposalBase(SQLModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    proposed_by: str = Field(index=True)
    location: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    status: str = Field(default="active", index=True)
    voting_deadline: Optional[datetime] = Field(default=None)
    average_ranking: Optional[float] = Field(default=None)
    # Set when the proposal wraps an item a member saved directly.
    saved_entity_id: Optional[uuid.UUID] = Field(default=None, unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FlightProposal(ProposalBase, table=True):
    __tablename__ = "flight_proposals"
    __table_args__ = (Index("ix_flight_proposals_trip_created", "trip_id", "created_at"),)

    flight_number: Optional[str] = Field(default=None)
    airline: Optional[str] = Field(default=None)
    airline_code: Optional[str] = Field(default=None)
    departure_airport: Optional[str] = Field(default=None)
    departure_code: Optional[str] = Field(default=None)
    departure_time: Optional[datetime] = Field(default=None)
    arrival_airport: Optional[str] = Field(default=None)
    arrival_code: Optional[str] = Field(default=None)
    arrival_time: Optional[datetime] = Field(default=None)
    price: Optional[float] = Field(default=None)
    currency: Optional[str] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)


class HotelProposal(ProposalBase, table=True):
    __tablename__ = "hotel_proposals"
    __table_args__ = (Index("ix_hotel_proposals_trip_created", "trip_id", "created_at"),)

    hotel_name: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    country: Optional[str] = Field(default=None)
    check_in_date: Optional[datetime] = Field(default=None)
    check_out_date: Optional[datetime] = Field(default=None)
    guest_count: Optional[int] = Field(default=None)
    room_count: Optional[int] = Field(default=None)
    price_per_night: Optional[float] = Field(default=None)
    total_price: Optional[float] = Field(default=None)
    currency: Optional[str] = Field(default=None)
    rating: Optional[float] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)


class RestaurantProposal(ProposalBase, table=True):
    __tablename__ = "restaurant_proposals"
    __table_args__ = (Index("ix_restaurant_proposals_trip_created", "trip_id", "created_at"),)

    name: Optional[str] = Field(default=None)
    cuisine: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    country: Optional[str] = Field(default=None)
    reservation_date: Optional[datetime] = Field(default=None)
    party_size: Optional[int] = Field(default=None)
    price_range: Optional[str] = Field(default=None)
    rating: Optional[float] = Field(default=None)
    booking_url: Optional[str] = Field(default=None)


class ActivityProposal(ProposalBase, table=True):
    __tablename__ = "activity_proposals"
    __table_args__ = (Index("ix_activity_proposals_trip_created", "trip_id", "created_at"),)

    name: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    start_time: Optional[datetime] = Field(default=None)
    end_time: Optional[datetime] = Field(default=None)
    cost_per_person: Optional[float] = Field(default=None)
    max_capacity: Optional[int] = Field(default=None)


class ProposalVote(SQLModel, table=True):
    __tablename__ = "proposal_votes"
    __table_args__ = (UniqueConstraint("proposal_id", "user_id", name="uq_proposal_votes_proposal_user"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    category: str = Field(index=True)  # 'flight'|'hotel'|'restaurant'|'activity'
    proposal_id: uuid.UUID = Field(index=True)
    user_id: str = Field(index=True)
    status: str = Field(default="pending")  # 'pending'|'accepted'|'declined'
    rank: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProposalScheduleLink(SQLModel, table=True):
    """The only record proving a proposal was promoted; unique per proposal."""

    __tablename__ = "proposal_schedule_links"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    source_type: str = Field(index=True)
    proposal_id: uuid.UUID = Field(unique=True, index=True)
    scheduled_table: str
    scheduled_entity_id: uuid.UUID = Field(index=True)
    trip_id: uuid.UUID = Field(foreign_key="trips.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)


class EntityRsvp(SQLModel, table=True):
    __tablename__ = "entity_rsvps"
    __table_args__ = (
        UniqueConstraint("scheduled_entity_id", "user_id", name="uq_entity_rsvps_entity_user"),
        Index("ix_entity_rsvps_user_status", "user_id", "status"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    scheduled_table: str = Field(index=True)
    scheduled_entity_id: uuid.UUID = Field(index=True)
    user_id: str = Field(index=True)
    status: str = Field(default="pending")  # 'pending'|'accepted'|'declined'
    responded_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
