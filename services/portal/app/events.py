from __future__ import annotations

import re
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app.errors import ConflictError, NotFoundError
from services.portal.app.logging import logger
from services.portal.app.pagination import Page, PageRequest
from services.portal.app.phone import format_phone_number
from services.portal.app.realtime import HUB, RowChange
from services.portal.app.scheduling import (
    ensure_end_after_start,
    event_status,
    local_to_utc,
    now,
    utc_to_local_fields,
)
from services.portal.app.schemas import (
    AttendeeOut,
    EventCreateRequest,
    EventFormFields,
    EventOut,
    EventUpdateRequest,
    PublicEventOut,
    SavedSubmissionOut,
    ThemeOut,
)
from services.portal.app.settings import SETTINGS
from services.portal.app.tables import attendees, events, saved
from services.portal.app.themes import resolve_theme


_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    slug = _SLUG_STRIP.sub("-", name.lower()).strip("-")
    return slug or "event"


def _event_end(ev: Any) -> Any:
    # Events without an explicit end are treated as ending at their start.
    return sa.func.coalesce(ev.c.end_date, ev.c.date)


def _stats_select() -> sa.Select:
    attendee_count = (
        sa.select(sa.func.count())
        .select_from(attendees)
        .where(attendees.c.event_id == events.c.id)
        .scalar_subquery()
    )
    saved_count = sa.select(sa.func.count()).select_from(saved).where(saved.c.event_id == events.c.id).scalar_subquery()
    lead_count = (
        sa.select(sa.func.count())
        .select_from(saved)
        .where(saved.c.event_id == events.c.id, saved.c.assigned_user_id.is_not(None))
        .scalar_subquery()
    )
    return sa.select(
        events,
        attendee_count.label("attendee_count"),
        saved_count.label("saved_count"),
        lead_count.label("lead_count"),
    )


def _theme_out(m: Any) -> ThemeOut:
    try:
        theme = resolve_theme(m["theme_name"], m["theme_from"], m["theme_through"], m["theme_to"])
    except ValueError:
        theme = resolve_theme(None)
    return ThemeOut(**theme.as_dict())


def _event_out(m: Any, at: datetime | None = None) -> EventOut:
    return EventOut(
        id=m["id"],
        name=m["name"],
        url_slug=m["url_slug"],
        description=m["description"],
        date=m["date"],
        end_date=m["end_date"],
        archived=bool(m["archived"]),
        status=event_status(m["date"], m["end_date"], bool(m["archived"]), at),
        theme=_theme_out(m),
        created_at=m["created_at"],
        updated_at=m["updated_at"],
        attendee_count=int(m.get("attendee_count") or 0),
        saved_count=int(m.get("saved_count") or 0),
        lead_count=int(m.get("lead_count") or 0),
    )


async def list_events_with_stats(session: AsyncSession, include_archived: bool = False) -> list[EventOut]:
    q = _stats_select()
    if not include_archived:
        q = q.where(events.c.archived.is_(False))
    rows = (await session.execute(q.order_by(events.c.date.desc()))).mappings().all()
    ts = now()
    return [_event_out(r, ts) for r in rows]


async def list_upcoming_events(session: AsyncSession, include_archived: bool = False) -> list[EventOut]:
    ts = now()
    q = _stats_select().where(_event_end(events) >= ts)
    if not include_archived:
        q = q.where(events.c.archived.is_(False))
    rows = (await session.execute(q.order_by(events.c.date.asc()))).mappings().all()
    return [_event_out(r, ts) for r in rows]


async def list_past_events(session: AsyncSession, request: PageRequest, include_archived: bool = False) -> Page[EventOut]:
    ts = now()
    where = [_event_end(events) < ts]
    if not include_archived:
        where.append(events.c.archived.is_(False))

    q = _stats_select().where(*where).order_by(events.c.date.desc()).limit(request.page_size).offset(request.offset)
    rows = (await session.execute(q)).mappings().all()
    total = int((await session.execute(sa.select(sa.func.count()).select_from(events).where(*where))).scalar_one())
    return Page(
        rows=[_event_out(r, ts) for r in rows],
        total_count=total,
        current_page=request.page,
        page_size=request.page_size,
    )


async def get_event(session: AsyncSession, event_id: UUID) -> EventOut:
    row = (await session.execute(_stats_select().where(events.c.id == event_id))).mappings().first()
    if not row:
        raise NotFoundError("event not found")
    return _event_out(row)


async def get_event_row(session: AsyncSession, *, slug: str | None = None, event_id: UUID | None = None) -> dict[str, Any]:
    q = sa.select(events)
    q = q.where(events.c.url_slug == slug) if slug is not None else q.where(events.c.id == event_id)
    row = (await session.execute(q)).mappings().first()
    if not row:
        raise NotFoundError("event not found")
    return dict(row)


async def get_public_event(session: AsyncSession, slug: str) -> PublicEventOut:
    row = await get_event_row(session, slug=slug)
    # Archived events are hidden from the public site.
    if row["archived"]:
        raise NotFoundError("event not found")
    return PublicEventOut(
        id=row["id"],
        name=row["name"],
        url_slug=row["url_slug"],
        description=row["description"],
        date=row["date"],
        end_date=row["end_date"],
        status=event_status(row["date"], row["end_date"], False),
        theme=_theme_out(row),
    )


def event_form_fields(event: EventOut, tz_name: str | None = None) -> EventFormFields:
    tz = tz_name or SETTINGS.default_timezone
    start_date, start_time = utc_to_local_fields(event.date, tz)
    end_date = end_time = None
    if event.end_date is not None:
        end_date, end_time = utc_to_local_fields(event.end_date, tz)
    return EventFormFields(timezone=tz, start_date=start_date, start_time=start_time, end_date=end_date, end_time=end_time)


def resolve_schedule(
    tz_name: str,
    start_date: str,
    start_time: str,
    end_date: str | None,
    end_time: str | None,
) -> tuple[datetime, datetime]:
    """
    Turn form fields into a UTC (start, end) pair. A missing end date means the same day;
    a missing end time means the start time. An end not after the start becomes start + 1h.
    """
    start = local_to_utc(start_date, start_time, tz_name)
    end = None
    if end_date is not None or end_time is not None:
        end = local_to_utc(end_date or start_date, end_time or start_time, tz_name)
    return start, ensure_end_after_start(start, end)


async def _ensure_slug_free(session: AsyncSession, slug: str, exclude_id: UUID | None = None) -> None:
    q = sa.select(events.c.id).where(events.c.url_slug == slug)
    if exclude_id is not None:
        q = q.where(events.c.id != exclude_id)
    if (await session.execute(q)).first() is not None:
        raise ConflictError(f"url_slug already in use: {slug}")


async def _unique_slug(session: AsyncSession, base: str) -> str:
    taken = set(
        (await session.execute(sa.select(events.c.url_slug).where(events.c.url_slug.like(f"{base}%")))).scalars().all()
    )
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


async def create_event(session: AsyncSession, req: EventCreateRequest) -> EventOut:
    tz = req.timezone or SETTINGS.default_timezone
    start, end = resolve_schedule(tz, req.start_date, req.start_time, req.end_date, req.end_time)
    theme = resolve_theme(req.theme_name, req.theme_from, req.theme_through, req.theme_to)

    if req.url_slug:
        await _ensure_slug_free(session, req.url_slug)
        slug = req.url_slug
    else:
        slug = await _unique_slug(session, slugify(req.name))

    event_id = uuid4()
    ts = now()
    await session.execute(
        sa.insert(events).values(
            id=event_id,
            name=req.name.strip(),
            url_slug=slug,
            description=req.description,
            date=start,
            end_date=end,
            archived=False,
            theme_name=theme.name,
            theme_from=theme.from_color,
            theme_through=theme.through_color,
            theme_to=theme.to_color,
            created_at=ts,
            updated_at=ts,
        )
    )
    await session.commit()
    HUB.publish(RowChange(table="events", op="INSERT", row_id=event_id, event_id=event_id))
    logger.info("event_created", event_id=str(event_id), url_slug=slug)
    return await get_event(session, event_id)


_SCHEDULE_FIELDS = ("start_date", "start_time", "end_date", "end_time", "timezone")


async def update_event(session: AsyncSession, event_id: UUID, req: EventUpdateRequest) -> EventOut:
    current = await get_event(session, event_id)
    fields = req.model_dump(exclude_unset=True)
    reschedule = any(k in fields for k in _SCHEDULE_FIELDS)
    tz = fields.pop("timezone", None) or SETTINGS.default_timezone
    values: dict[str, Any] = {}

    for k in ("name", "description", "archived"):
        if k in fields and fields[k] is not None:
            values[k] = fields[k].strip() if k == "name" else fields[k]
    if "description" in fields and fields["description"] is None:
        values["description"] = None

    if fields.get("url_slug") and fields["url_slug"] != current.url_slug:
        await _ensure_slug_free(session, fields["url_slug"], exclude_id=event_id)
        values["url_slug"] = fields["url_slug"]

    # Local wall-clock fields are ambiguous across a fall-back hour, so the stored
    # instants are only re-derived when the schedule itself is edited.
    if reschedule:
        existing = event_form_fields(current, tz)
        start, end = resolve_schedule(
            tz,
            fields.get("start_date") or existing.start_date,
            fields.get("start_time") or existing.start_time,
            fields.get("end_date") or existing.end_date,
            fields.get("end_time") or existing.end_time,
        )
        values["date"] = start
        values["end_date"] = end

    if any(k in fields for k in ("theme_name", "theme_from", "theme_through", "theme_to")):
        theme = resolve_theme(
            fields.get("theme_name", current.theme.name),
            fields.get("theme_from", current.theme.from_color),
            fields.get("theme_through", current.theme.through_color),
            fields.get("theme_to", current.theme.to_color),
        )
        values.update(
            theme_name=theme.name,
            theme_from=theme.from_color,
            theme_through=theme.through_color,
            theme_to=theme.to_color,
        )

    values["updated_at"] = now()
    await session.execute(sa.update(events).where(events.c.id == event_id).values(**values))
    await session.commit()
    HUB.publish(RowChange(table="events", op="UPDATE", row_id=event_id, event_id=event_id))
    logger.info("event_updated", event_id=str(event_id), fields=sorted(fields))
    return await get_event(session, event_id)


async def archive_event(session: AsyncSession, event_id: UUID, archived: bool) -> EventOut:
    res = await session.execute(
        sa.update(events).where(events.c.id == event_id).values(archived=archived, updated_at=now()).returning(events.c.id)
    )
    if res.first() is None:
        await session.rollback()
        raise NotFoundError("event not found")
    await session.commit()
    HUB.publish(RowChange(table="events", op="UPDATE", row_id=event_id, event_id=event_id))
    logger.info("event_archived", event_id=str(event_id), archived=archived)
    return await get_event(session, event_id)


async def list_event_attendees(session: AsyncSession, event_id: UUID) -> list[AttendeeOut]:
    await get_event_row(session, event_id=event_id)
    q = sa.select(attendees).where(attendees.c.event_id == event_id).order_by(attendees.c.created_at.asc())
    rows = (await session.execute(q)).mappings().all()
    return [AttendeeOut(**r, phone_display=format_phone_number(r["phone"])) for r in rows]


def is_matched(submission: Any, attendee_rows: list[Any]) -> bool:
    """A saved submission matches an attendee sharing its full name (case-insensitive) or its phone."""
    first = (submission["first_name"] or "").lower()
    last = (submission["last_name"] or "").lower()
    phone = submission["phone"]
    for a in attendee_rows:
        if (a["first_name"] or "").lower() == first and (a["last_name"] or "").lower() == last:
            return True
        if phone and a["phone"] == phone:
            return True
    return False


async def list_event_saved(session: AsyncSession, event_id: UUID) -> list[SavedSubmissionOut]:
    await get_event_row(session, event_id=event_id)
    att = (
        (await session.execute(sa.select(attendees).where(attendees.c.event_id == event_id))).mappings().all()
    )
    q = sa.select(saved).where(saved.c.event_id == event_id).order_by(saved.c.created_at.asc())
    rows = (await session.execute(q)).mappings().all()
    return [
        SavedSubmissionOut(
            id=r["id"],
            event_id=r["event_id"],
            first_name=r["first_name"],
            last_name=r["last_name"],
            email=r["email"],
            phone=r["phone"],
            phone_display=format_phone_number(r["phone"]),
            age_range=r["age_range"],
            needs_ride=bool(r["needs_ride"]),
            contacted=bool(r["contacted"]),
            assigned_user_id=r["assigned_user_id"],
            created_at=r["created_at"],
            matched=is_matched(r, att),
        )
        for r in rows
    ]
