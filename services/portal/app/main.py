from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID, uuid4

import sqlalchemy as sa
from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app import auth, events, leads, registrations, users
from services.portal.app.auth import CurrentUser, current_user, require_lead_access, require_super_admin
from services.portal.app.db import ENGINE, SESSIONMAKER, dispose_engine, get_session
from services.portal.app.errors import AuthError, ConflictError, NotFoundError, PermissionDeniedError, PortalError
from services.portal.app.live import LeadsPageController
from services.portal.app.logging import configure_logging, log_context, logger
from services.portal.app.observability import (
    LIVE_CONNECTIONS,
    add_metrics_middleware,
    instrument_sqlalchemy,
    setup_tracing,
)
from services.portal.app.pagination import Page, PageRequest, page_window, showing_range, validate_page_size
from services.portal.app.permissions import admin_landing_path, lead_scope_user_id, permission_label
from services.portal.app.realtime import HUB
from services.portal.app.schemas import (
    ArchiveRequest,
    AttendeeOut,
    BulkAssignRequest,
    BulkAssignResponse,
    EventCreateRequest,
    EventDetailResponse,
    EventOut,
    EventPageResponse,
    EventUpdateRequest,
    LeadCreateRequest,
    LeadOut,
    LeadPageResponse,
    LeadUpdateRequest,
    LiveCommand,
    LoginRequest,
    MeResponse,
    PermissionUpdateRequest,
    ProfileOut,
    ProfileUpdateRequest,
    ProfileWithPermissionOut,
    PublicEventOut,
    RegistrationRequest,
    SavedFormRequest,
    SavedSubmissionOut,
    SignUpRequest,
    SubmissionResponse,
    ThemeOut,
    TokenResponse,
    UserEventsResponse,
)
from services.portal.app.settings import SETTINGS
from services.portal.app.themes import PREDEFINED_THEMES


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await dispose_engine()


app = FastAPI(title="Event Leads Portal API", version="0.1.0", lifespan=_lifespan)
configure_logging(SETTINGS.log_level)
if SETTINGS.otel_enabled:
    setup_tracing(app, service_name="portal")
    instrument_sqlalchemy(ENGINE)
add_metrics_middleware(app, service_name="portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid4().hex
    with log_context(request_id=request_id):
        resp = await call_next(request)
    resp.headers["x-request-id"] = request_id
    return resp


_ERROR_STATUS: dict[type[PortalError], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    PermissionDeniedError: 403,
    AuthError: 401,
}


@app.exception_handler(PortalError)
async def _portal_error(request: Request, exc: PortalError) -> JSONResponse:
    status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    logger.info("request_rejected", path=request.url.path, status=status, reason=str(exc))
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def _lead_page_response(page: Page[LeadOut]) -> LeadPageResponse:
    first, last = showing_range(page.current_page, page.page_size, page.total_count)
    return LeadPageResponse(
        leads=page.rows,
        total_count=page.total_count,
        total_pages=page.total_pages,
        current_page=page.current_page,
        page_size=page.page_size,
        page_numbers=page_window(page.current_page, page.total_pages),
        showing_from=first,
        showing_to=last,
    )


def _me(user: CurrentUser) -> MeResponse:
    return MeResponse(
        user_id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        permission_level=user.permission_level,
        permission_label=permission_label(user.permission_level),
        landing_path=admin_landing_path(user.permission_level),
    )


def _token(user: CurrentUser) -> TokenResponse:
    token, expires_at = auth.issue_token(user.user_id)
    return TokenResponse(access_token=token, expires_at=expires_at)


def _page_size(page_size: int | None) -> int:
    try:
        return validate_page_size(page_size or SETTINGS.default_page_size)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)) -> dict:
    await session.execute(sa.text("SELECT 1"))
    return {"ok": True}


# Public site


@app.get("/themes", response_model=list[ThemeOut])
async def list_themes() -> list[ThemeOut]:
    return [ThemeOut(**t.as_dict()) for t in PREDEFINED_THEMES]


@app.get("/events/{slug}", response_model=PublicEventOut)
async def public_event(slug: str, session: AsyncSession = Depends(get_session)) -> PublicEventOut:
    return await events.get_public_event(session, slug)


@app.post("/events/{slug}/register", response_model=SubmissionResponse)
async def register(
    slug: str, req: RegistrationRequest, session: AsyncSession = Depends(get_session)
) -> SubmissionResponse:
    return SubmissionResponse(id=await registrations.register_attendee(session, slug, req))


@app.post("/events/{slug}/saved", response_model=SubmissionResponse)
async def event_saved(slug: str, req: SavedFormRequest, session: AsyncSession = Depends(get_session)) -> SubmissionResponse:
    return SubmissionResponse(id=await registrations.submit_saved(session, req, slug=slug))


@app.post("/saved", response_model=SubmissionResponse)
async def standalone_saved(req: SavedFormRequest, session: AsyncSession = Depends(get_session)) -> SubmissionResponse:
    return SubmissionResponse(id=await registrations.submit_saved(session, req))


# Auth


@app.post("/auth/signup", response_model=TokenResponse)
async def signup(req: SignUpRequest, session: AsyncSession = Depends(get_session)) -> TokenResponse:
    user = await auth.sign_up(session, req.email, req.password, req.first_name, req.last_name)
    return _token(user)


@app.post("/auth/login", response_model=TokenResponse)
async def login(req: LoginRequest, session: AsyncSession = Depends(get_session)) -> TokenResponse:
    user = await auth.sign_in(session, req.email, req.password)
    logger.info("user_signed_in", user_id=str(user.user_id))
    return _token(user)


@app.get("/auth/me", response_model=MeResponse)
async def me(user: CurrentUser = Depends(current_user)) -> MeResponse:
    return _me(user)


@app.put("/auth/me", response_model=MeResponse)
async def update_me(
    req: ProfileUpdateRequest,
    user: CurrentUser = Depends(current_user),
    session: AsyncSession = Depends(get_session),
) -> MeResponse:
    changes = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    return _me(await auth.update_profile(session, user.user_id, changes))


# Leads (lead managers and super admins)


@app.get("/admin/leads", response_model=LeadPageResponse)
async def list_leads(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None),
    search: str = Query(default="", max_length=200),
    hide_contacted: bool = False,
    hide_assigned: bool = False,
    user: CurrentUser = Depends(require_lead_access),
    session: AsyncSession = Depends(get_session),
) -> LeadPageResponse:
    query = leads.LeadQuery(
        page=page,
        page_size=_page_size(page_size),
        search=search,
        hide_contacted=hide_contacted,
        hide_assigned=hide_assigned,
        assigned_user_id=lead_scope_user_id(user.user_id, user.permission_level),
    )
    return _lead_page_response(await leads.fetch_leads_page(session, query))


@app.post("/admin/leads", response_model=LeadOut)
async def create_lead(
    req: LeadCreateRequest,
    user: CurrentUser = Depends(require_lead_access),
    session: AsyncSession = Depends(get_session),
) -> LeadOut:
    return await leads.create_lead(session, req, lead_scope_user_id(user.user_id, user.permission_level))


@app.post("/admin/leads/bulk-assign", response_model=BulkAssignResponse)
async def bulk_assign(
    req: BulkAssignRequest,
    user: CurrentUser = Depends(require_lead_access),
    session: AsyncSession = Depends(get_session),
) -> BulkAssignResponse:
    scope = lead_scope_user_id(user.user_id, user.permission_level)
    updated = await leads.bulk_assign_leads(session, req.lead_ids, req.assigned_user_id, scope)
    return BulkAssignResponse(updated=updated)


@app.patch("/admin/leads/{lead_id}", response_model=LeadOut)
async def update_lead(
    lead_id: UUID,
    req: LeadUpdateRequest,
    user: CurrentUser = Depends(require_lead_access),
    session: AsyncSession = Depends(get_session),
) -> LeadOut:
    changes = req.model_dump(exclude_unset=True)
    scope = lead_scope_user_id(user.user_id, user.permission_level)
    if not changes:
        return await leads.get_lead(session, lead_id, scope)
    return await leads.update_lead(session, lead_id, changes, scope)


@app.get("/admin/profiles", response_model=list[ProfileOut])
async def assignable_profiles(
    user: CurrentUser = Depends(require_lead_access),
    session: AsyncSession = Depends(get_session),
) -> list[ProfileOut]:
    return await leads.list_assignable_profiles(session)


async def _fetch_live_page(query: leads.LeadQuery) -> Page[LeadOut]:
    async with SESSIONMAKER() as session:
        return await leads.fetch_leads_page(session, query)


async def _apply_command(controller: LeadsPageController, cmd: LiveCommand) -> Page[LeadOut]:
    if cmd.action == "set_page":
        return await controller.set_page(cmd.page)
    if cmd.action == "set_page_size":
        return await controller.set_page_size(cmd.page_size)
    if cmd.action == "set_search":
        return await controller.set_search(cmd.search)
    if cmd.action == "set_filters":
        return await controller.set_filters(hide_contacted=cmd.hide_contacted, hide_assigned=cmd.hide_assigned)
    return await controller.load()


@app.websocket("/admin/leads/live")
async def leads_live(websocket: WebSocket, token: str = "") -> None:
    async with SESSIONMAKER() as session:
        try:
            user = await auth.authenticate_token(session, token)
        except AuthError:
            await websocket.close(code=4401)
            return
    try:
        scope = lead_scope_user_id(user.user_id, user.permission_level)
    except PermissionDeniedError:
        await websocket.close(code=4403)
        return

    await websocket.accept()

    async def push(page: Page[LeadOut]) -> None:
        payload = _lead_page_response(page).model_dump(mode="json")
        payload.update(
            type="page",
            search=controller.search,
            hide_contacted=controller.hide_contacted,
            hide_assigned=controller.hide_assigned,
            error=controller.last_error,
        )
        await websocket.send_json(payload)

    controller = LeadsPageController(
        _fetch_live_page,
        scope_user_id=scope,
        page_size=_page_size(None),
        debounce_seconds=SETTINGS.realtime_debounce_ms / 1000.0,
        on_update=push,
    )
    with log_context(live_user_id=str(user.user_id)):
        controller.attach(HUB)
        LIVE_CONNECTIONS.inc()
        logger.info("live_leads_connected", restricted=scope is not None)
        try:
            await push(await controller.load())
            while True:
                try:
                    cmd = LiveCommand.model_validate(await websocket.receive_json())
                except ValidationError as e:
                    await websocket.send_json({"type": "error", "detail": e.errors(include_url=False, include_context=False)})
                    continue
                except ValueError as e:
                    await websocket.send_json({"type": "error", "detail": [{"type": "json_invalid", "msg": str(e)}]})
                    continue
                await push(await _apply_command(controller, cmd))
        except WebSocketDisconnect:
            pass
        finally:
            await controller.aclose()
            LIVE_CONNECTIONS.dec()
            logger.info("live_leads_disconnected")


# Events (super admins)


@app.get("/admin/events", response_model=list[EventOut])
async def admin_events(
    include_archived: bool = False,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> list[EventOut]:
    return await events.list_events_with_stats(session, include_archived)


@app.get("/admin/events/upcoming", response_model=list[EventOut])
async def admin_upcoming_events(
    include_archived: bool = False,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> list[EventOut]:
    return await events.list_upcoming_events(session, include_archived)


@app.get("/admin/events/past", response_model=EventPageResponse)
async def admin_past_events(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None),
    include_archived: bool = False,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> EventPageResponse:
    result = await events.list_past_events(session, PageRequest(page=page, page_size=_page_size(page_size)), include_archived)
    return EventPageResponse(
        events=result.rows,
        total_count=result.total_count,
        total_pages=result.total_pages,
        current_page=result.current_page,
        page_size=result.page_size,
    )


@app.post("/admin/events", response_model=EventOut)
async def admin_create_event(
    req: EventCreateRequest,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> EventOut:
    try:
        return await events.create_event(session, req)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/admin/events/{event_id}", response_model=EventDetailResponse)
async def admin_event_detail(
    event_id: UUID,
    timezone: str | None = None,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> EventDetailResponse:
    event = await events.get_event(session, event_id)
    try:
        form = events.event_form_fields(event, timezone)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return EventDetailResponse(event=event, form=form)


@app.patch("/admin/events/{event_id}", response_model=EventOut)
async def admin_update_event(
    event_id: UUID,
    req: EventUpdateRequest,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> EventOut:
    try:
        return await events.update_event(session, event_id, req)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/admin/events/{event_id}/archive", response_model=EventOut)
async def admin_archive_event(
    event_id: UUID,
    req: ArchiveRequest,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> EventOut:
    return await events.archive_event(session, event_id, req.archived)


@app.get("/admin/events/{event_id}/attendees", response_model=list[AttendeeOut])
async def admin_event_attendees(
    event_id: UUID,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> list[AttendeeOut]:
    return await events.list_event_attendees(session, event_id)


@app.get("/admin/events/{event_id}/saved", response_model=list[SavedSubmissionOut])
async def admin_event_saved(
    event_id: UUID,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> list[SavedSubmissionOut]:
    return await events.list_event_saved(session, event_id)


# Users (super admins)


@app.get("/admin/users", response_model=list[ProfileWithPermissionOut])
async def admin_users(
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> list[ProfileWithPermissionOut]:
    return await users.list_profiles_with_permissions(session)


@app.put("/admin/users/{user_id}/permission", response_model=ProfileWithPermissionOut)
async def admin_set_permission(
    user_id: UUID,
    req: PermissionUpdateRequest,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> ProfileWithPermissionOut:
    return await users.set_permission_level(session, user_id, req.permission_level)


@app.get("/admin/users/{user_id}/events", response_model=UserEventsResponse)
async def admin_user_events(
    user_id: UUID,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> UserEventsResponse:
    return await users.list_user_event_assignments(session, user_id)


@app.post("/admin/users/{user_id}/events/{event_id}", response_model=UserEventsResponse)
async def admin_assign_event(
    user_id: UUID,
    event_id: UUID,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> UserEventsResponse:
    return await users.assign_user_to_event(session, user_id, event_id)


@app.delete("/admin/users/{user_id}/events/{event_id}", response_model=UserEventsResponse)
async def admin_unassign_event(
    user_id: UUID,
    event_id: UUID,
    user: CurrentUser = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
) -> UserEventsResponse:
    return await users.remove_user_from_event(session, user_id, event_id)
