"""Lookup indexes for trip-scoped proposal listings and RSVP inboxes.

Revision ID: 0002_compat_indexes
Revises: 0001_init
Create Date: 2026-03-09
"""

from alembic import op


revision = "0002_compat_indexes"
down_revision = "0001_init"
branch_labels = None
depends_on = None


PROPOSAL_TABLES = ("flight_proposals", "hotel_proposals", "restaurant_proposals", "activity_proposals")


def upgrade() -> None:
    for table in PROPOSAL_TABLES:
        op.create_index(f"ix_{table}_trip_created", table, ["trip_id", "created_at"])
    op.create_index("ix_entity_rsvps_user_status", "entity_rsvps", ["user_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_entity_rsvps_user_status", table_name="entity_rsvps")
    for table in PROPOSAL_TABLES:
        op.drop_index(f"ix_{table}_trip_created", table_name=table)
