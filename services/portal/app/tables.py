"""
Table definitions shared by the query modules.

The schema itself is owned by the Alembic migrations under `db/migrations`; these
are the column sets the service reads and writes.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


METADATA = sa.MetaData()

profiles = sa.Table(
    "profiles",
    METADATA,
    sa.Column("user_id", UUID(as_uuid=True), primary_key=True),
    sa.Column("email", sa.Text(), nullable=False),
    sa.Column("first_name", sa.Text(), nullable=False),
    sa.Column("last_name", sa.Text(), nullable=False),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("password_salt", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

profile_permissions = sa.Table(
    "profile_permissions",
    METADATA,
    sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("profiles.user_id"), primary_key=True),
    sa.Column("permission_level", sa.Integer(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

events = sa.Table(
    "events",
    METADATA,
    sa.Column("id", UUID(as_uuid=True), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("url_slug", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("archived", sa.Boolean(), nullable=False),
    sa.Column("theme_name", sa.Text(), nullable=True),
    sa.Column("theme_from", sa.Text(), nullable=True),
    sa.Column("theme_through", sa.Text(), nullable=True),
    sa.Column("theme_to", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

attendees = sa.Table(
    "attendees",
    METADATA,
    sa.Column("id", UUID(as_uuid=True), primary_key=True),
    sa.Column("event_id", UUID(as_uuid=True), sa.ForeignKey("events.id"), nullable=False),
    sa.Column("first_name", sa.Text(), nullable=False),
    sa.Column("last_name", sa.Text(), nullable=False),
    sa.Column("phone", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

# Saved form submissions double as leads.
saved = sa.Table(
    "saved",
    METADATA,
    sa.Column("id", UUID(as_uuid=True), primary_key=True),
    sa.Column("event_id", UUID(as_uuid=True), sa.ForeignKey("events.id"), nullable=True),
    sa.Column("first_name", sa.Text(), nullable=False),
    sa.Column("last_name", sa.Text(), nullable=False),
    sa.Column("email", sa.Text(), nullable=False),
    sa.Column("phone", sa.Text(), nullable=False),
    sa.Column("age_range", sa.Text(), nullable=True),
    sa.Column("needs_ride", sa.Boolean(), nullable=False),
    sa.Column("contacted", sa.Boolean(), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Column("assigned_user_id", UUID(as_uuid=True), sa.ForeignKey("profiles.user_id"), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

event_assignments = sa.Table(
    "event_assignments",
    METADATA,
    sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("profiles.user_id"), primary_key=True),
    sa.Column("event_id", UUID(as_uuid=True), sa.ForeignKey("events.id"), primary_key=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
