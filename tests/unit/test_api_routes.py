from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import httpx
import pytest


class FakeSession:
    async def execute(self, *_args, **_kwargs):
        return None


@pytest.fixture()
def portal_app():
    from services.portal.app.db import get_session
    from services.portal.app.main import app

    async def _session():
        yield FakeSession()

    app.dependency_overrides[get_session] = _session
    yield app
    app.dependency_overrides.clear()


def _login_as(app, level: int):
    from services.portal.app.auth import CurrentUser, current_user

    user = CurrentUser(user_id=uuid4(), email="staff@example.com", first_name="Sam", last_name="Staff", permission_level=level)
    app.dependency_overrides[current_user] = lambda: user
    return user


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://portal")


def _event_out():
    from services.portal.app.schemas import EventOut, ThemeOut
    from services.portal.app.themes import DEFAULT_THEME

    ts = datetime(2026, 10, 17, 17, 0, tzinfo=UTC)
    return EventOut(
        id=uuid4(),
        name="Fall Kickoff",
        url_slug="fall-kickoff",
        description=None,
        date=ts,
        end_date=None,
        archived=False,
        status="Upcoming",
        theme=ThemeOut(**DEFAULT_THEME.as_dict()),
        created_at=ts,
        updated_at=ts,
    )


@pytest.mark.asyncio
async def test_healthz_and_themes(portal_app):
    async with _client(portal_app) as client:
        r = await client.get("/healthz")
        assert r.status_code == 200
        assert r.json() == {"ok": True}

        r = await client.get("/themes")
        assert r.status_code == 200
        assert len(r.json()) == 20
        assert set(r.json()[0]) == {"name", "from_color", "through_color", "to_color"}


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_request_counters(portal_app):
    async with _client(portal_app) as client:
        await client.get("/themes")
        r = await client.get("/metrics")
        assert r.status_code == 200
        assert "request_success_total" in r.text


@pytest.mark.asyncio
async def test_leads_require_authentication(portal_app):
    async with _client(portal_app) as client:
        r = await client.get("/admin/leads")
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_regular_users_cannot_see_leads(portal_app):
    _login_as(portal_app, 2)
    async with _client(portal_app) as client:
        r = await client.get("/admin/leads")
        assert r.status_code == 403


@pytest.mark.asyncio
async def test_lead_manager_list_is_scoped_and_paged(portal_app, monkeypatch):
    import services.portal.app.leads as leads
    from services.portal.app.pagination import Page

    user = _login_as(portal_app, 1)
    seen = []

    async def fake_fetch(session, query):
        seen.append(query)
        return Page(rows=[], total_count=95, current_page=query.page, page_size=query.page_size)

    monkeypatch.setattr(leads, "fetch_leads_page", fake_fetch)
    async with _client(portal_app) as client:
        r = await client.get("/admin/leads", params={"page": 5, "page_size": 10, "search": "ava", "hide_contacted": "true"})
    assert r.status_code == 200
    body = r.json()
    assert seen[0].assigned_user_id == user.user_id
    assert (seen[0].search, seen[0].hide_contacted, seen[0].hide_assigned) == ("ava", True, False)
    assert body["total_pages"] == 10
    assert body["page_numbers"] == [3, 4, 5, 6, 7]
    assert (body["showing_from"], body["showing_to"]) == (41, 50)


@pytest.mark.asyncio
async def test_super_admin_list_is_unrestricted(portal_app, monkeypatch):
    import services.portal.app.leads as leads
    from services.portal.app.pagination import Page

    _login_as(portal_app, 0)
    seen = []

    async def fake_fetch(session, query):
        seen.append(query)
        return Page(rows=[], total_count=0, current_page=query.page, page_size=query.page_size)

    monkeypatch.setattr(leads, "fetch_leads_page", fake_fetch)
    async with _client(portal_app) as client:
        r = await client.get("/admin/leads")
    assert r.status_code == 200
    assert seen[0].assigned_user_id is None
    assert seen[0].page_size == 20
    assert r.json()["page_numbers"] == []
    assert r.json()["total_pages"] == 0


@pytest.mark.asyncio
async def test_lead_list_rejects_bad_paging(portal_app):
    _login_as(portal_app, 0)
    async with _client(portal_app) as client:
        assert (await client.get("/admin/leads", params={"page_size": 15})).status_code == 422
        assert (await client.get("/admin/leads", params={"page": 0})).status_code == 422


@pytest.mark.asyncio
async def test_domain_errors_map_to_http_status(portal_app, monkeypatch):
    import services.portal.app.leads as leads
    import services.portal.app.registrations as registrations
    from services.portal.app.errors import ConflictError, NotFoundError

    _login_as(portal_app, 1)

    async def missing(*_args, **_kwargs):
        raise NotFoundError("lead not found")

    async def archived(*_args, **_kwargs):
        raise ConflictError("This event is no longer available.")

    monkeypatch.setattr(leads, "update_lead", missing)
    monkeypatch.setattr(registrations, "register_attendee", archived)
    async with _client(portal_app) as client:
        r = await client.patch(f"/admin/leads/{uuid4()}", json={"contacted": True})
        assert r.status_code == 404
        assert r.json() == {"detail": "lead not found"}

        r = await client.post("/events/old-event/register", json={"first_name": "A", "last_name": "B", "phone": "555"})
        assert r.status_code == 409
        assert r.json()["detail"] == "This event is no longer available."


@pytest.mark.asyncio
async def test_update_lead_passes_only_sent_fields(portal_app, monkeypatch):
    import services.portal.app.leads as leads
    from services.portal.app.errors import NotFoundError

    user = _login_as(portal_app, 1)
    calls = []

    async def fake_update(session, lead_id, changes, scope):
        calls.append((changes, scope))
        raise NotFoundError("lead not found")

    monkeypatch.setattr(leads, "update_lead", fake_update)
    async with _client(portal_app) as client:
        await client.patch(f"/admin/leads/{uuid4()}", json={"assigned_user_id": None, "notes": "called back"})
    assert calls == [({"assigned_user_id": None, "notes": "called back"}, user.user_id)]


@pytest.mark.asyncio
async def test_bulk_assign_validates_and_reports_count(portal_app, monkeypatch):
    import services.portal.app.leads as leads

    _login_as(portal_app, 0)

    async def fake_bulk(session, ids, assignee, scope):
        assert scope is None
        return len(ids) - 1

    monkeypatch.setattr(leads, "bulk_assign_leads", fake_bulk)
    async with _client(portal_app) as client:
        r = await client.post("/admin/leads/bulk-assign", json={"lead_ids": []})
        assert r.status_code == 422

        r = await client.post(
            "/admin/leads/bulk-assign",
            json={"lead_ids": [str(uuid4()), str(uuid4())], "assigned_user_id": str(uuid4())},
        )
        assert r.status_code == 200
        assert r.json() == {"updated": 1}


@pytest.mark.asyncio
async def test_event_admin_requires_super_admin(portal_app):
    _login_as(portal_app, 1)
    async with _client(portal_app) as client:
        assert (await client.get("/admin/events")).status_code == 403
        assert (await client.get("/admin/users")).status_code == 403


@pytest.mark.asyncio
async def test_event_form_errors_are_unprocessable(portal_app, monkeypatch):
    import services.portal.app.events as events

    _login_as(portal_app, 0)

    async def bad_zone(session, req):
        raise ValueError("unknown timezone: Mars/Base")

    monkeypatch.setattr(events, "create_event", bad_zone)
    async with _client(portal_app) as client:
        r = await client.post(
            "/admin/events",
            json={"name": "Fall Kickoff", "start_date": "2026-10-17", "timezone": "Mars/Base"},
        )
        assert r.status_code == 422
        assert "unknown timezone" in r.json()["detail"]

        r = await client.post("/admin/events", json={"name": "Fall Kickoff", "start_date": "10/17/2026"})
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_event_detail_includes_local_form_fields(portal_app, monkeypatch):
    import services.portal.app.events as events

    _login_as(portal_app, 0)
    event = _event_out()

    async def fake_get(session, event_id):
        return event

    monkeypatch.setattr(events, "get_event", fake_get)
    async with _client(portal_app) as client:
        r = await client.get(f"/admin/events/{event.id}", params={"timezone": "America/Chicago"})
        assert r.status_code == 200
        assert r.json()["form"] == {
            "timezone": "America/Chicago",
            "start_date": "2026-10-17",
            "start_time": "12:00",
            "end_date": None,
            "end_time": None,
        }
        r = await client.get(f"/admin/events/{event.id}", params={"timezone": "Nowhere/Special"})
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_public_forms_reject_extra_fields(portal_app):
    async with _client(portal_app) as client:
        r = await client.post(
            "/events/fall-kickoff/saved",
            json={"first_name": "A", "last_name": "B", "phone": "5551234567", "email": "a@example.org", "extra": "nope"},
        )
        assert r.status_code == 422

        r = await client.post(
            "/saved",
            json={"first_name": "A", "last_name": "B", "phone": "5551234567", "email": "a@example.org", "age_range": "Senior"},
        )
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_me_reports_landing_path(portal_app):
    _login_as(portal_app, 1)
    async with _client(portal_app) as client:
        r = await client.get("/auth/me")
    assert r.status_code == 200
    body = r.json()
    assert body["permission_label"] == "Lead Manager"
    assert body["landing_path"] == "/admin/leads"
    assert body["full_name"] == "Sam Staff"


def test_live_command_requires_arguments() -> None:
    from pydantic import ValidationError

    from services.portal.app.schemas import LiveCommand

    assert LiveCommand(action="refresh").action == "refresh"
    assert LiveCommand(action="set_page", page=2).page == 2
    with pytest.raises(ValidationError):
        LiveCommand(action="set_page")
    with pytest.raises(ValidationError):
        LiveCommand(action="set_page_size", page_size=25)
    with pytest.raises(ValidationError):
        LiveCommand(action="set_search")
    with pytest.raises(ValidationError):
        LiveCommand(action="sort", page=1)


@pytest.mark.asyncio
async def test_request_id_is_echoed_and_metrics_use_route_templates(portal_app, monkeypatch):
    import services.portal.app.leads as leads
    from services.portal.app.errors import NotFoundError

    _login_as(portal_app, 0)

    async def missing(*_args, **_kwargs):
        raise NotFoundError("lead not found")

    monkeypatch.setattr(leads, "update_lead", missing)
    async with _client(portal_app) as client:
        r = await client.get("/themes", headers={"x-request-id": "req-123"})
        assert r.headers["x-request-id"] == "req-123"
        assert r.headers["x-request-id"] != (await client.get("/themes")).headers["x-request-id"]

        await client.patch(f"/admin/leads/{uuid4()}", json={"contacted": True})
        text = (await client.get("/metrics")).text
    assert 'route="/admin/leads/{lead_id}"' in text
