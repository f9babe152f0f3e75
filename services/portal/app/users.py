from __future__ import annotations

from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app.errors import NotFoundError
from services.portal.app.events import get_event_row
from services.portal.app.logging import logger
from services.portal.app.permissions import PermissionLevel, permission_label, permission_level_of
from services.portal.app.scheduling import now
from services.portal.app.schemas import (
    EventAssignmentOut,
    EventSummary,
    ProfileWithPermissionOut,
    UserEventsResponse,
)
from services.portal.app.tables import event_assignments, events, profile_permissions, profiles


async def list_profiles_with_permissions(session: AsyncSession) -> list[ProfileWithPermissionOut]:
    q = (
        sa.select(
            profiles.c.user_id,
            profiles.c.email,
            profiles.c.first_name,
            profiles.c.last_name,
            profiles.c.created_at,
            profiles.c.updated_at,
            profile_permissions.c.permission_level,
        )
        .select_from(profiles.outerjoin(profile_permissions, profile_permissions.c.user_id == profiles.c.user_id))
        .order_by(profiles.c.first_name.asc(), profiles.c.last_name.asc())
    )
    rows = (await session.execute(q)).mappings().all()
    out = []
    for r in rows:
        level = permission_level_of(r["permission_level"])
        out.append(
            ProfileWithPermissionOut(
                user_id=r["user_id"],
                email=r["email"],
                first_name=r["first_name"],
                last_name=r["last_name"],
                permission_level=level,
                permission_label=permission_label(level),
                created_at=r["created_at"],
                updated_at=r["updated_at"],
            )
        )
    return out


async def _ensure_user(session: AsyncSession, user_id: UUID) -> None:
    q = sa.select(profiles.c.user_id).where(profiles.c.user_id == user_id)
    if (await session.execute(q)).first() is None:
        raise NotFoundError("user not found")


async def set_permission_level(session: AsyncSession, user_id: UUID, level: int) -> ProfileWithPermissionOut:
    level = int(PermissionLevel(level))
    await _ensure_user(session, user_id)
    ts = now()
    stmt = pg_insert(profile_permissions).values(user_id=user_id, permission_level=level, updated_at=ts)
    stmt = stmt.on_conflict_do_update(
        index_elements=[profile_permissions.c.user_id],
        set_={"permission_level": stmt.excluded.permission_level, "updated_at": stmt.excluded.updated_at},
    )
    await session.execute(stmt)
    await session.commit()
    logger.info("permission_updated", user_id=str(user_id), permission_level=level)
    for p in await list_profiles_with_permissions(session):
        if p.user_id == user_id:
            return p
    raise NotFoundError("user not found")


async def list_user_event_assignments(session: AsyncSession, user_id: UUID) -> UserEventsResponse:
    await _ensure_user(session, user_id)
    q = (
        sa.select(
            event_assignments.c.user_id,
            event_assignments.c.event_id,
            event_assignments.c.created_at,
            events.c.name,
            events.c.url_slug,
            events.c.date,
        )
        .select_from(event_assignments.join(events, events.c.id == event_assignments.c.event_id))
        .where(event_assignments.c.user_id == user_id)
        .order_by(events.c.date.desc())
    )
    rows = (await session.execute(q)).mappings().all()
    assignments = [
        EventAssignmentOut(
            user_id=r["user_id"],
            event_id=r["event_id"],
            created_at=r["created_at"],
            event=EventSummary(id=r["event_id"], name=r["name"], url_slug=r["url_slug"]),
            event_date=r["date"],
        )
        for r in rows
    ]

    assigned_ids = {a.event_id for a in assignments}
    all_events = (
        await session.execute(sa.select(events.c.id, events.c.name, events.c.url_slug).order_by(events.c.date.desc()))
    ).mappings().all()
    available = [EventSummary(**e) for e in all_events if e["id"] not in assigned_ids]
    return UserEventsResponse(assignments=assignments, available_events=available)


async def assign_user_to_event(session: AsyncSession, user_id: UUID, event_id: UUID) -> UserEventsResponse:
    await _ensure_user(session, user_id)
    await get_event_row(session, event_id=event_id)
    stmt = (
        pg_insert(event_assignments)
        .values(user_id=user_id, event_id=event_id, created_at=now())
        .on_conflict_do_nothing(index_elements=[event_assignments.c.user_id, event_assignments.c.event_id])
    )
    await session.execute(stmt)
    await session.commit()
    logger.info("event_assigned", user_id=str(user_id), event_id=str(event_id))
    return await list_user_event_assignments(session, user_id)


async def remove_user_from_event(session: AsyncSession, user_id: UUID, event_id: UUID) -> UserEventsResponse:
    res = await session.execute(
        sa.delete(event_assignments)
        .where(event_assignments.c.user_id == user_id, event_assignments.c.event_id == event_id)
        .returning(event_assignments.c.event_id)
    )
    if res.first() is None:
        await session.rollback()
        raise NotFoundError("assignment not found")
    await session.commit()
    logger.info("event_unassigned", user_id=str(user_id), event_id=str(event_id))
    return await list_user_event_assignments(session, user_id)
