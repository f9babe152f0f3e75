from __future__ import annotations

from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app.errors import ConflictError
from services.portal.app.events import get_event_row
from services.portal.app.logging import logger
from services.portal.app.realtime import HUB, RowChange
from services.portal.app.scheduling import now
from services.portal.app.schemas import RegistrationRequest, SavedFormRequest
from services.portal.app.tables import attendees, saved


async def _open_event_id(session: AsyncSession, slug: str) -> UUID:
    row = await get_event_row(session, slug=slug)
    if row["archived"]:
        raise ConflictError("This event is no longer available.")
    return row["id"]


async def register_attendee(session: AsyncSession, slug: str, req: RegistrationRequest) -> UUID:
    event_id = await _open_event_id(session, slug)
    attendee_id = uuid4()
    await session.execute(
        sa.insert(attendees).values(
            id=attendee_id,
            event_id=event_id,
            first_name=req.first_name.strip(),
            last_name=req.last_name.strip(),
            phone=req.phone.strip(),
            created_at=now(),
        )
    )
    await session.commit()
    HUB.publish(RowChange(table="attendees", op="INSERT", row_id=attendee_id, event_id=event_id))
    logger.info("attendee_registered", event_id=str(event_id), attendee_id=str(attendee_id))
    return attendee_id


async def submit_saved(session: AsyncSession, req: SavedFormRequest, slug: str | None = None) -> UUID:
    """Record a saved form. Without a slug the submission is not tied to any event."""
    event_id = await _open_event_id(session, slug) if slug is not None else None
    saved_id = uuid4()
    ts = now()
    await session.execute(
        sa.insert(saved).values(
            id=saved_id,
            event_id=event_id,
            first_name=req.first_name.strip(),
            last_name=req.last_name.strip(),
            email=req.email.strip(),
            phone=req.phone.strip(),
            age_range=req.age_range,
            needs_ride=req.needs_ride,
            contacted=False,
            notes=None,
            assigned_user_id=None,
            created_at=ts,
            updated_at=ts,
        )
    )
    await session.commit()
    HUB.publish(RowChange(table="saved", op="INSERT", row_id=saved_id, event_id=event_id))
    logger.info("saved_submitted", event_id=str(event_id) if event_id else None, saved_id=str(saved_id))
    return saved_id
