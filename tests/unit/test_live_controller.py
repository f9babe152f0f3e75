from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from uuid import uuid4

import pytest


def _lead(first: str = "Ava"):
    from services.portal.app.schemas import LeadOut

    ts = datetime(2026, 10, 1, tzinfo=UTC)
    return LeadOut(
        id=uuid4(),
        event_id=None,
        first_name=first,
        last_name="Smith",
        email=f"{first.lower()}@example.org",
        phone="5551234567",
        phone_display="(555) 123-4567",
        age_range=None,
        needs_ride=False,
        contacted=False,
        notes=None,
        assigned_user_id=None,
        created_at=ts,
        updated_at=ts,
    )


class RecordingFetch:
    def __init__(self, total: int = 95, gate: asyncio.Event | None = None, fail: bool = False):
        self.queries = []
        self.total = total
        self.gate = gate
        self.fail = fail

    async def __call__(self, query):
        from services.portal.app.pagination import Page

        self.queries.append(query)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("database unavailable")
        return Page(rows=[_lead()], total_count=self.total, current_page=query.page, page_size=query.page_size)


@pytest.mark.asyncio
async def test_filter_changes_reset_to_first_page() -> None:
    from services.portal.app.live import LeadsPageController

    fetch = RecordingFetch()
    c = LeadsPageController(fetch, page_size=10)
    await c.set_page(4)
    assert c.page == 4

    await c.set_hide_contacted(True)
    assert (c.page, c.hide_contacted) == (1, True)

    await c.set_page(3)
    await c.set_hide_assigned(True)
    assert (c.page, c.hide_assigned) == (1, True)

    await c.set_page(2)
    await c.set_search("  smith ")
    assert (c.page, c.search) == (1, "smith")

    await c.set_page(5)
    await c.set_page_size(50)
    assert (c.page, c.page_size) == (1, 50)

    await c.set_page(2)
    await c.set_filters(hide_contacted=False)
    assert (c.page, c.hide_contacted, c.hide_assigned) == (1, False, True)

    last = fetch.queries[-1]
    assert (last.page, last.page_size, last.search, last.hide_contacted, last.hide_assigned) == (1, 50, "smith", False, True)


@pytest.mark.asyncio
async def test_scope_is_carried_into_every_query() -> None:
    from services.portal.app.live import LeadsPageController

    manager_id = uuid4()
    fetch = RecordingFetch()
    c = LeadsPageController(fetch, scope_user_id=manager_id)
    await c.load()
    await c.set_search("x")
    assert all(q.assigned_user_id == manager_id for q in fetch.queries)


@pytest.mark.asyncio
async def test_set_page_is_ignored_while_loading_or_unchanged() -> None:
    from services.portal.app.live import LeadsPageController

    gate = asyncio.Event()
    fetch = RecordingFetch(gate=gate)
    c = LeadsPageController(fetch)

    first = asyncio.create_task(c.load())
    await asyncio.sleep(0)
    assert c.is_loading

    await c.set_page(3)
    assert c.page == 1

    gate.set()
    await first
    assert not c.is_loading
    assert len(fetch.queries) == 1

    await c.set_page(1)
    assert len(fetch.queries) == 1

    with pytest.raises(ValueError):
        await c.set_page(0)


@pytest.mark.asyncio
async def test_overlapping_load_runs_one_follow_up() -> None:
    from services.portal.app.live import LeadsPageController

    gate = asyncio.Event()
    fetch = RecordingFetch(gate=gate)
    c = LeadsPageController(fetch)

    first = asyncio.create_task(c.load())
    await asyncio.sleep(0)
    await c.set_search("ava")
    await c.load()

    gate.set()
    page = await first
    assert [q.search for q in fetch.queries] == ["", "ava"]
    assert page.current_page == 1
    assert c.snapshot is page


@pytest.mark.asyncio
async def test_fetch_failure_leaves_empty_page() -> None:
    from services.portal.app.live import LeadsPageController

    fetch = RecordingFetch(fail=True)
    c = LeadsPageController(fetch, page_size=20)
    page = await c.load()
    assert page.rows == []
    assert page.total_count == 0
    assert c.last_error == "database unavailable"
    assert not c.is_loading

    fetch.fail = False
    page = await c.load()
    assert page.total_count == 95
    assert c.last_error is None


@pytest.mark.asyncio
async def test_row_changes_trigger_one_debounced_reload() -> None:
    from services.portal.app.live import LeadsPageController
    from services.portal.app.realtime import ChangeHub, RowChange

    hub = ChangeHub()
    fetch = RecordingFetch()
    pushed = []

    async def on_update(page) -> None:
        pushed.append(page)

    c = LeadsPageController(fetch, debounce_seconds=0.05, on_update=on_update)
    c.attach(hub)
    assert hub.subscriber_count == 1

    for _ in range(4):
        hub.publish(RowChange(table="saved", op="INSERT", row_id=uuid4()))
    hub.publish(RowChange(table="events", op="UPDATE", row_id=uuid4()))
    await asyncio.sleep(0.2)

    assert len(fetch.queries) == 1
    assert len(pushed) == 1

    await c.aclose()
    assert hub.subscriber_count == 0
    hub.publish(RowChange(table="saved", op="INSERT", row_id=uuid4()))
    await asyncio.sleep(0.1)
    assert len(fetch.queries) == 1


def test_invalid_page_size_is_rejected() -> None:
    from services.portal.app.live import LeadsPageController

    with pytest.raises(ValueError):
        LeadsPageController(RecordingFetch(), page_size=15)
