from __future__ import annotations

from datetime import UTC, datetime

import pytest


class RecordingSession:
    def __init__(self) -> None:
        self.statements = []
        self.commits = 0

    async def execute(self, stmt, *_args, **_kwargs):
        self.statements.append(stmt)

    async def commit(self) -> None:
        self.commits += 1


def _event_at(start: datetime, end: datetime):
    from uuid import uuid4

    from services.portal.app.schemas import EventOut, ThemeOut
    from services.portal.app.themes import DEFAULT_THEME

    return EventOut(
        id=uuid4(),
        name="Harvest Night",
        url_slug="harvest-night",
        description=None,
        date=start,
        end_date=end,
        archived=False,
        status="Upcoming",
        theme=ThemeOut(**DEFAULT_THEME.as_dict()),
        created_at=start,
        updated_at=start,
    )


def _written_values(session: RecordingSession) -> dict:
    (stmt,) = session.statements
    return stmt.compile().params


@pytest.fixture()
def fall_back_event(monkeypatch):
    import services.portal.app.events as events

    # Second 01:30 of the America/Chicago fall-back night.
    event = _event_at(datetime(2026, 11, 1, 7, 30, tzinfo=UTC), datetime(2026, 11, 1, 8, 30, tzinfo=UTC))

    async def fake_get(session, event_id):
        return event

    monkeypatch.setattr(events, "get_event", fake_get)
    return event


@pytest.mark.asyncio
async def test_rename_keeps_stored_schedule_across_fall_back(fall_back_event) -> None:
    from services.portal.app.events import update_event
    from services.portal.app.schemas import EventUpdateRequest

    session = RecordingSession()
    await update_event(session, fall_back_event.id, EventUpdateRequest(name="Harvest Night 2026"))
    values = _written_values(session)
    assert values["name"] == "Harvest Night 2026"
    assert "date" not in values
    assert "end_date" not in values
    assert session.commits == 1


@pytest.mark.asyncio
async def test_schedule_edit_rederives_start_and_end(fall_back_event) -> None:
    from services.portal.app.events import update_event
    from services.portal.app.schemas import EventUpdateRequest

    session = RecordingSession()
    req = EventUpdateRequest(
        start_date="2026-11-02", start_time="18:00", end_date="2026-11-02", end_time="20:00", timezone="America/Chicago"
    )
    await update_event(session, fall_back_event.id, req)
    values = _written_values(session)
    assert values["date"] == datetime(2026, 11, 3, 0, 0, tzinfo=UTC)
    assert values["end_date"] == datetime(2026, 11, 3, 2, 0, tzinfo=UTC)
