from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Details(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: Optional[str] = None
    notes: Optional[str] = None


class FlightDetails(_Details):
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    airline_code: Optional[str] = None
    departure_airport: Optional[str] = None
    departure_code: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_airport: Optional[str] = None
    arrival_code: Optional[str] = None
    arrival_time: Optional[datetime] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    booking_url: Optional[str] = None


class HotelDetails(_Details):
    hotel_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    guest_count: Optional[int] = Field(default=None, ge=1)
    room_count: Optional[int] = Field(default=None, ge=1)
    price_per_night: Optional[float] = None
    total_price: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    booking_url: Optional[str] = None


class RestaurantDetails(_Details):
    name: Optional[str] = None
    cuisine: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    reservation_date: Optional[datetime] = None
    party_size: Optional[int] = Field(default=None, ge=1)
    price_range: Optional[str] = None
    rating: Optional[float] = None
    booking_url: Optional[str] = None


class ActivityDetails(_Details):
    name: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    cost_per_person: Optional[float] = None
    max_capacity: Optional[int] = Field(default=None, ge=1)


DETAILS_SCHEMAS: Dict[str, type[_Details]] = {
    "flight": FlightDetails,
    "hotel": HotelDetails,
    "restaurant": RestaurantDetails,
    "activity": ActivityDetails,
}


class CreateProposalRequest(BaseModel):
    details: Dict[str, Any] = Field(default_factory=dict)
    voting_deadline: Optional[datetime] = None
    # Share an item already saved to the trip instead of proposing from scratch.
    saved_item_id: Optional[str] = None


class VoteRequest(BaseModel):
    status: Optional[Literal["pending", "accepted", "declined"]] = None
    rank: Optional[int] = None


class DeadlineRequest(BaseModel):
    voting_deadline: Optional[datetime] = None


class ConvertRequest(BaseModel):
    status: str = "scheduled"


class SaveItemRequest(BaseModel):
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str = "tentative"


class RsvpRequest(BaseModel):
    status: Literal["pending", "accepted", "declined"]


class VoteSummaryResponse(BaseModel):
    accepted_count: int
    pending_count: int
    declined_count: int
    total: int
    average_ranking: Optional[float] = None


class VoteResponse(BaseModel):
    user_id: str
    status: str
    rank: Optional[int] = None
    updated_at: str


class LinkResponse(BaseModel):
    scheduled_table: str
    scheduled_entity_id: str
    created_at: str


class ProposalResponse(BaseModel):
    id: str
    category: str
    trip_id: str
    proposed_by: str
    status: str
    display_status: Optional[str] = None
    display_label: Optional[str] = None
    voting_deadline: Optional[str] = None
    average_ranking: Optional[float] = None
    saved_entity_id: Optional[str] = None
    details: Dict[str, Any]
    votes: Optional[VoteSummaryResponse] = None
    current_user_vote: Optional[VoteResponse] = None
    link: Optional[LinkResponse] = None
    created_at: str
    updated_at: str


class CreateProposalResponse(BaseModel):
    proposal: ProposalResponse
    was_created: bool


class ScheduledEntityResponse(BaseModel):
    id: str
    category: str
    trip_id: str
    user_id: str
    status: str
    details: Dict[str, Any]
    created_at: str


class ConvertResponse(BaseModel):
    proposal: ProposalResponse
    entity: ScheduledEntityResponse
    link: LinkResponse
    rsvps_created: int


class RsvpResponse(BaseModel):
    user_id: str
    status: str
    responded_at: Optional[str] = None


class RsvpListResponse(BaseModel):
    scheduled_table: str
    scheduled_entity_id: str
    rsvps: List[RsvpResponse]
