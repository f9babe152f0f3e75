from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app.errors import NotFoundError
from services.portal.app.logging import logger
from services.portal.app.pagination import DEFAULT_PAGE_SIZE, Page, PageRequest
from services.portal.app.phone import format_phone_number
from services.portal.app.realtime import HUB, RowChange
from services.portal.app.scheduling import now
from services.portal.app.schemas import AssigneeSummary, EventSummary, LeadCreateRequest, LeadOut, ProfileOut
from services.portal.app.tables import events, profiles, saved


_assignee = profiles.alias("assignee")


@dataclass(frozen=True)
class LeadQuery:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    search: str = ""
    hide_contacted: bool = False
    hide_assigned: bool = False
    # None means no assignee restriction (super admins).
    assigned_user_id: UUID | None = None

    @property
    def page_request(self) -> PageRequest:
        return PageRequest(page=self.page, page_size=self.page_size)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def lead_filters(query: LeadQuery) -> list[Any]:
    where: list[Any] = []
    if query.hide_contacted:
        where.append(saved.c.contacted.is_(False))
    if query.hide_assigned:
        where.append(saved.c.assigned_user_id.is_(None))
    if query.assigned_user_id is not None:
        where.append(saved.c.assigned_user_id == query.assigned_user_id)

    term = (query.search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        full_name = saved.c.first_name + " " + saved.c.last_name
        where.append(
            sa.or_(
                saved.c.first_name.ilike(pattern, escape="\\"),
                saved.c.last_name.ilike(pattern, escape="\\"),
                full_name.ilike(pattern, escape="\\"),
                saved.c.email.ilike(pattern, escape="\\"),
                saved.c.phone.ilike(pattern, escape="\\"),
            )
        )
    return where


def _lead_select() -> sa.Select:
    return sa.select(
        saved,
        events.c.name.label("event_name"),
        events.c.url_slug.label("event_slug"),
        _assignee.c.first_name.label("assignee_first_name"),
        _assignee.c.last_name.label("assignee_last_name"),
    ).select_from(
        saved.outerjoin(events, events.c.id == saved.c.event_id).outerjoin(
            _assignee, _assignee.c.user_id == saved.c.assigned_user_id
        )
    )


def build_leads_page_query(query: LeadQuery) -> sa.Select:
    req = query.page_request
    q = _lead_select()
    where = lead_filters(query)
    if where:
        q = q.where(*where)
    return q.order_by(saved.c.created_at.desc(), saved.c.id.desc()).limit(req.page_size).offset(req.offset)


def build_leads_count_query(query: LeadQuery) -> sa.Select:
    q = sa.select(sa.func.count()).select_from(saved)
    where = lead_filters(query)
    if where:
        q = q.where(*where)
    return q


def _lead_out(m: Any) -> LeadOut:
    event = None
    if m["event_id"] is not None and m["event_name"] is not None:
        event = EventSummary(id=m["event_id"], name=m["event_name"], url_slug=m["event_slug"])
    assignee = None
    if m["assigned_user_id"] is not None and m["assignee_first_name"] is not None:
        assignee = AssigneeSummary(
            user_id=m["assigned_user_id"],
            first_name=m["assignee_first_name"],
            last_name=m["assignee_last_name"],
        )
    return LeadOut(
        id=m["id"],
        event_id=m["event_id"],
        first_name=m["first_name"],
        last_name=m["last_name"],
        email=m["email"],
        phone=m["phone"],
        phone_display=format_phone_number(m["phone"]),
        age_range=m["age_range"],
        needs_ride=bool(m["needs_ride"]),
        contacted=bool(m["contacted"]),
        notes=m["notes"],
        assigned_user_id=m["assigned_user_id"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
        event=event,
        assignee=assignee,
    )


async def fetch_leads_page(session: AsyncSession, query: LeadQuery) -> Page[LeadOut]:
    rows = (await session.execute(build_leads_page_query(query))).mappings().all()
    total = int((await session.execute(build_leads_count_query(query))).scalar_one())
    page = Page(
        rows=[_lead_out(r) for r in rows],
        total_count=total,
        current_page=query.page,
        page_size=query.page_size,
    )
    logger.info(
        "leads_page_loaded",
        page=query.page,
        page_size=query.page_size,
        rows=len(page.rows),
        total_count=total,
        restricted=query.assigned_user_id is not None,
    )
    return page


async def get_lead(session: AsyncSession, lead_id: UUID, scope_user_id: UUID | None = None) -> LeadOut:
    q = _lead_select().where(saved.c.id == lead_id)
    if scope_user_id is not None:
        q = q.where(saved.c.assigned_user_id == scope_user_id)
    row = (await session.execute(q)).mappings().first()
    if not row:
        raise NotFoundError("lead not found")
    return _lead_out(row)


async def _ensure_profile(session: AsyncSession, user_id: UUID | None) -> None:
    if user_id is None:
        return
    q = sa.select(profiles.c.user_id).where(profiles.c.user_id == user_id)
    if (await session.execute(q)).first() is None:
        raise NotFoundError("assignee not found")


async def _ensure_event(session: AsyncSession, event_id: UUID | None) -> None:
    if event_id is None:
        return
    q = sa.select(events.c.id).where(events.c.id == event_id)
    if (await session.execute(q)).first() is None:
        raise NotFoundError("event not found")


async def create_lead(session: AsyncSession, req: LeadCreateRequest, scope_user_id: UUID | None = None) -> LeadOut:
    # Lead managers can only create leads they will be able to see.
    assigned = scope_user_id if scope_user_id is not None else req.assigned_user_id
    await _ensure_event(session, req.event_id)
    await _ensure_profile(session, assigned)

    ts = now()
    lead_id = uuid4()
    await session.execute(
        sa.insert(saved).values(
            id=lead_id,
            event_id=req.event_id,
            first_name=req.first_name.strip(),
            last_name=req.last_name.strip(),
            email=req.email.strip(),
            phone=req.phone.strip(),
            age_range=req.age_range,
            needs_ride=req.needs_ride,
            contacted=req.contacted,
            notes=req.notes or None,
            assigned_user_id=assigned,
            created_at=ts,
            updated_at=ts,
        )
    )
    await session.commit()
    HUB.publish(RowChange(table="saved", op="INSERT", row_id=lead_id, event_id=req.event_id))
    logger.info("lead_created", lead_id=str(lead_id), assigned=assigned is not None)
    return await get_lead(session, lead_id)


async def update_lead(
    session: AsyncSession,
    lead_id: UUID,
    changes: dict[str, Any],
    scope_user_id: UUID | None = None,
) -> LeadOut:
    """
    Apply a partial update. Keys present in `changes` are written, including explicit None
    (e.g. `assigned_user_id=None` unassigns).
    """
    if "assigned_user_id" in changes:
        await _ensure_profile(session, changes["assigned_user_id"])

    values = dict(changes)
    for k in ("first_name", "last_name", "email", "phone"):
        if values.get(k) is not None:
            values[k] = values[k].strip()
    values["updated_at"] = now()

    q = sa.update(saved).where(saved.c.id == lead_id)
    if scope_user_id is not None:
        q = q.where(saved.c.assigned_user_id == scope_user_id)
    row = (await session.execute(q.values(**values).returning(saved.c.id, saved.c.event_id))).first()
    if row is None:
        await session.rollback()
        raise NotFoundError("lead not found")
    await session.commit()

    HUB.publish(RowChange(table="saved", op="UPDATE", row_id=lead_id, event_id=row.event_id))
    logger.info("lead_updated", lead_id=str(lead_id), fields=sorted(changes))
    return await get_lead(session, lead_id)


async def bulk_assign_leads(
    session: AsyncSession,
    lead_ids: list[UUID],
    assigned_user_id: UUID | None,
    scope_user_id: UUID | None = None,
) -> int:
    await _ensure_profile(session, assigned_user_id)
    ids = list(dict.fromkeys(lead_ids))

    q = sa.update(saved).where(saved.c.id.in_(ids))
    if scope_user_id is not None:
        # Leads outside the caller's scope are silently skipped.
        q = q.where(saved.c.assigned_user_id == scope_user_id)
    q = q.values(assigned_user_id=assigned_user_id, updated_at=now()).returning(saved.c.id, saved.c.event_id)
    rows = (await session.execute(q)).all()
    await session.commit()

    for r in rows:
        HUB.publish(RowChange(table="saved", op="UPDATE", row_id=r.id, event_id=r.event_id))
    logger.info("leads_bulk_assigned", requested=len(ids), updated=len(rows), unassign=assigned_user_id is None)
    return len(rows)


async def list_assignable_profiles(session: AsyncSession) -> list[ProfileOut]:
    q = sa.select(profiles.c.user_id, profiles.c.first_name, profiles.c.last_name).order_by(
        profiles.c.first_name.asc(), profiles.c.last_name.asc()
    )
    rows = (await session.execute(q)).mappings().all()
    return [ProfileOut(**r) for r in rows]
