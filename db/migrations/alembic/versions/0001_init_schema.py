"""init schema

Revision ID: 0001_init_schema
Revises: None
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("password_salt", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
    )

    op.create_table(
        "profile_permissions",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.user_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("permission_level", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("permission_level BETWEEN 0 AND 2", name="ck_profile_permissions_level"),
    )

    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url_slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("theme_name", sa.Text(), nullable=True),
        sa.Column("theme_from", sa.Text(), nullable=True),
        sa.Column("theme_through", sa.Text(), nullable=True),
        sa.Column("theme_to", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("url_slug", name="uq_events_url_slug"),
    )

    op.create_table(
        "attendees",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "saved",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("age_range", sa.Text(), nullable=True),
        sa.Column("needs_ride", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contacted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "assigned_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.user_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "event_assignments",
        sa.Column(
            "user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "event_id"),
    )

    op.create_index("idx_events_date", "events", ["date"])
    op.create_index("idx_attendees_event", "attendees", ["event_id"])
    op.create_index("idx_saved_event", "saved", ["event_id"])
    op.create_index("idx_saved_assigned_user", "saved", ["assigned_user_id"])
    op.create_index("idx_saved_created", "saved", ["created_at", "id"])


def downgrade() -> None:
    op.drop_index("idx_saved_created", table_name="saved")
    op.drop_index("idx_saved_assigned_user", table_name="saved")
    op.drop_index("idx_saved_event", table_name="saved")
    op.drop_index("idx_attendees_event", table_name="attendees")
    op.drop_index("idx_events_date", table_name="events")

    op.drop_table("event_assignments")
    op.drop_table("saved")
    op.drop_table("attendees")
    op.drop_table("events")
    op.drop_table("profile_permissions")
    op.drop_table("profiles")
