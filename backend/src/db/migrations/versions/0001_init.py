"""Initial schema.

Revision ID: 0001_init
Revises: None
Create Date: 2026-03-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _trip_fk() -> sa.Column:
    return _uuid("trip_id", sa.ForeignKey("trips.id"), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _proposal_columns() -> list[sa.Column]:
    return [
        _uuid("id", primary_key=True, nullable=False),
        _trip_fk(),
        sa.Column("proposed_by", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("voting_deadline", sa.DateTime(), nullable=True),
        sa.Column("average_ranking", sa.Float(), nullable=True),
        _uuid("saved_entity_id", nullable=True),
        *_timestamps(),
    ]


def _entity_columns() -> list[sa.Column]:
    return [
        _uuid("id", primary_key=True, nullable=False),
        _trip_fk(),
        sa.Column("user_id", sa.String(), nullable=False),
    ]


def _flight_columns() -> list[sa.Column]:
    return [
        sa.Column("flight_number", sa.String(), nullable=True),
        sa.Column("airline", sa.String(), nullable=True),
        sa.Column("airline_code", sa.String(), nullable=True),
        sa.Column("departure_airport", sa.String(), nullable=True),
        sa.Column("departure_code", sa.String(), nullable=True),
        sa.Column("departure_time", sa.DateTime(), nullable=True),
        sa.Column("arrival_airport", sa.String(), nullable=True),
        sa.Column("arrival_code", sa.String(), nullable=True),
        sa.Column("arrival_time", sa.DateTime(), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("booking_url", sa.String(), nullable=True),
    ]


def _hotel_columns() -> list[sa.Column]:
    return [
        sa.Column("hotel_name", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("check_in_date", sa.DateTime(), nullable=True),
        sa.Column("check_out_date", sa.DateTime(), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("room_count", sa.Integer(), nullable=True),
        sa.Column("price_per_night", sa.Float(), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("booking_url", sa.String(), nullable=True),
    ]


def _restaurant_columns() -> list[sa.Column]:
    return [
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("cuisine", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("reservation_date", sa.DateTime(), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=True),
        sa.Column("price_range", sa.String(), nullable=True),
        sa.Column("booking_url", sa.String(), nullable=True),
    ]


def _activity_columns() -> list[sa.Column]:
    return [
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=True),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("cost_per_person", sa.Float(), nullable=True),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
    ]


ENTITY_TABLES = ("flights", "hotels", "restaurants", "activities")
PROPOSAL_TABLES = ("flight_proposals", "hotel_proposals", "restaurant_proposals", "activity_proposals")


def upgrade() -> None:
    op.create_table(
        "trips",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("destination", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_trips_created_by", "trips", ["created_by"])

    op.create_table(
        "trip_members",
        _uuid("id", primary_key=True, nullable=False),
        _trip_fk(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("trip_id", "user_id", name="uq_trip_members_trip_user"),
    )
    op.create_index("ix_trip_members_trip_id", "trip_members", ["trip_id"])
    op.create_index("ix_trip_members_user_id", "trip_members", ["user_id"])

    op.create_table(
        "flights",
        *_entity_columns(),
        *_flight_columns(),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        *_timestamps(),
    )
    op.create_table(
        "hotels",
        *_entity_columns(),
        *_hotel_columns(),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        *_timestamps(),
    )
    op.create_table(
        "restaurants",
        *_entity_columns(),
        *_restaurant_columns(),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        *_timestamps(),
    )
    op.create_table(
        "activities",
        *_entity_columns(),
        sa.Column("type", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("location", sa.String(), nullable=True),
        *_activity_columns(),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        *_timestamps(),
    )
    for table in ENTITY_TABLES:
        op.create_index(f"ix_{table}_trip_id", table, ["trip_id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_status", table, ["status"])
    op.create_index("ix_activities_start_time", "activities", ["start_time"])

    op.create_table("flight_proposals", *_proposal_columns(), *_flight_columns())
    op.create_table(
        "hotel_proposals",
        *_proposal_columns(),
        *_hotel_columns(),
        sa.Column("rating", sa.Float(), nullable=True),
    )
    op.create_table(
        "restaurant_proposals",
        *_proposal_columns(),
        *_restaurant_columns(),
        sa.Column("rating", sa.Float(), nullable=True),
    )
    op.create_table("activity_proposals", *_proposal_columns(), *_activity_columns())
    for table in PROPOSAL_TABLES:
        op.create_index(f"ix_{table}_trip_id", table, ["trip_id"])
        op.create_index(f"ix_{table}_proposed_by", table, ["proposed_by"])
        op.create_index(f"ix_{table}_status", table, ["status"])
        op.create_index(f"ix_{table}_saved_entity_id", table, ["saved_entity_id"], unique=True)

    op.create_table(
        "proposal_votes",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        _uuid("proposal_id", nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("rank", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("proposal_id", "user_id", name="uq_proposal_votes_proposal_user"),
    )
    op.create_index("ix_proposal_votes_category", "proposal_votes", ["category"])
    op.create_index("ix_proposal_votes_proposal_id", "proposal_votes", ["proposal_id"])
    op.create_index("ix_proposal_votes_user_id", "proposal_votes", ["user_id"])

    op.create_table(
        "proposal_schedule_links",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("source_type", sa.String(), nullable=False),
        _uuid("proposal_id", nullable=False),
        sa.Column("scheduled_table", sa.String(), nullable=False),
        _uuid("scheduled_entity_id", nullable=False),
        _trip_fk(),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_proposal_schedule_links_source_type", "proposal_schedule_links", ["source_type"])
    op.create_index("ix_proposal_schedule_links_proposal_id", "proposal_schedule_links", ["proposal_id"], unique=True)
    op.create_index(
        "ix_proposal_schedule_links_scheduled_entity_id", "proposal_schedule_links", ["scheduled_entity_id"]
    )
    op.create_index("ix_proposal_schedule_links_trip_id", "proposal_schedule_links", ["trip_id"])

    op.create_table(
        "entity_rsvps",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("scheduled_table", sa.String(), nullable=False),
        _uuid("scheduled_entity_id", nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("scheduled_entity_id", "user_id", name="uq_entity_rsvps_entity_user"),
    )
    op.create_index("ix_entity_rsvps_scheduled_table", "entity_rsvps", ["scheduled_table"])
    op.create_index("ix_entity_rsvps_scheduled_entity_id", "entity_rsvps", ["scheduled_entity_id"])
    op.create_index("ix_entity_rsvps_user_id", "entity_rsvps", ["user_id"])


def downgrade() -> None:
    op.drop_table("entity_rsvps")
    op.drop_table("proposal_schedule_links")
    op.drop_table("proposal_votes")
    for table in PROPOSAL_TABLES:
        op.drop_table(table)
    for table in ENTITY_TABLES:
        op.drop_table(table)
    op.drop_table("trip_members")
    op.drop_table("trips")
