from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from services.portal.app.pagination import PAGE_SIZE_OPTIONS


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


AgeRange = Literal["Child", "Young Adult", "Adult"]
Name = Annotated[str, Field(min_length=1, max_length=120)]
Email = Annotated[str, Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")]
Phone = Annotated[str, Field(max_length=40)]
IsoDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]
HourMinute = Annotated[str, Field(pattern=r"^\d{2}:\d{2}$")]


# Auth


class SignUpRequest(StrictModel):
    email: Email
    password: str = Field(min_length=8, max_length=256)
    first_name: Name
    last_name: Name


class LoginRequest(StrictModel):
    email: Email
    password: str = Field(min_length=1, max_length=256)


class TokenResponse(StrictModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_at: datetime


class ProfileUpdateRequest(StrictModel):
    first_name: Name | None = None
    last_name: Name | None = None


class MeResponse(StrictModel):
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    permission_level: int
    permission_label: str
    landing_path: str


# Leads


class EventSummary(StrictModel):
    id: UUID
    name: str
    url_slug: str


class AssigneeSummary(StrictModel):
    user_id: UUID
    first_name: str
    last_name: str


class LeadOut(StrictModel):
    id: UUID
    event_id: UUID | None
    first_name: str
    last_name: str
    email: str
    phone: str
    phone_display: str
    age_range: AgeRange | None
    needs_ride: bool
    contacted: bool
    notes: str | None
    assigned_user_id: UUID | None
    created_at: datetime
    updated_at: datetime
    event: EventSummary | None = None
    assignee: AssigneeSummary | None = None


class LeadPageResponse(StrictModel):
    leads: list[LeadOut]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    page_numbers: list[int]
    showing_from: int
    showing_to: int


class LeadCreateRequest(StrictModel):
    event_id: UUID | None = None
    first_name: Name
    last_name: Name
    email: Email
    phone: Phone = ""
    age_range: AgeRange | None = None
    needs_ride: bool = False
    contacted: bool = False
    notes: str | None = Field(default=None, max_length=4000)
    assigned_user_id: UUID | None = None


class LeadUpdateRequest(StrictModel):
    first_name: Name | None = None
    last_name: Name | None = None
    email: Email | None = None
    phone: Phone | None = None
    age_range: AgeRange | None = None
    needs_ride: bool | None = None
    contacted: bool | None = None
    notes: str | None = Field(default=None, max_length=4000)
    assigned_user_id: UUID | None = None


class BulkAssignRequest(StrictModel):
    lead_ids: list[UUID]
    assigned_user_id: UUID | None = None

    @field_validator("lead_ids")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("lead_ids must be non-empty")
        return v


class BulkAssignResponse(StrictModel):
    updated: int


class ProfileOut(StrictModel):
    user_id: UUID
    first_name: str
    last_name: str


# Users


class ProfileWithPermissionOut(StrictModel):
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    permission_level: int
    permission_label: str
    created_at: datetime | None
    updated_at: datetime | None


class PermissionUpdateRequest(StrictModel):
    permission_level: Annotated[int, Field(ge=0, le=2)]


class EventAssignmentOut(StrictModel):
    user_id: UUID
    event_id: UUID
    created_at: datetime
    event: EventSummary
    event_date: datetime


class UserEventsResponse(StrictModel):
    assignments: list[EventAssignmentOut]
    available_events: list[EventSummary]


# Events


class ThemeOut(StrictModel):
    name: str
    from_color: str
    through_color: str
    to_color: str


class EventOut(StrictModel):
    id: UUID
    name: str
    url_slug: str
    description: str | None
    date: datetime
    end_date: datetime | None
    archived: bool
    status: str
    theme: ThemeOut
    created_at: datetime
    updated_at: datetime
    attendee_count: int = 0
    saved_count: int = 0
    lead_count: int = 0


class EventFormFields(StrictModel):
    timezone: str
    start_date: str
    start_time: str
    end_date: str | None
    end_time: str | None


class EventDetailResponse(StrictModel):
    event: EventOut
    form: EventFormFields


class EventPageResponse(StrictModel):
    events: list[EventOut]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int


class EventCreateRequest(StrictModel):
    name: Name
    url_slug: str | None = Field(default=None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$", max_length=120)
    description: str | None = Field(default=None, max_length=8000)
    start_date: IsoDate
    start_time: HourMinute = "12:00"
    end_date: IsoDate | None = None
    end_time: HourMinute | None = None
    timezone: str | None = None
    theme_name: str | None = None
    theme_from: str | None = None
    theme_through: str | None = None
    theme_to: str | None = None


class EventUpdateRequest(StrictModel):
    name: Name | None = None
    url_slug: str | None = Field(default=None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$", max_length=120)
    description: str | None = Field(default=None, max_length=8000)
    start_date: IsoDate | None = None
    start_time: HourMinute | None = None
    end_date: IsoDate | None = None
    end_time: HourMinute | None = None
    timezone: str | None = None
    archived: bool | None = None
    theme_name: str | None = None
    theme_from: str | None = None
    theme_through: str | None = None
    theme_to: str | None = None


class ArchiveRequest(StrictModel):
    archived: bool = True


class AttendeeOut(StrictModel):
    id: UUID
    event_id: UUID
    first_name: str
    last_name: str
    phone: str
    phone_display: str
    created_at: datetime


class SavedSubmissionOut(StrictModel):
    id: UUID
    event_id: UUID | None
    first_name: str
    last_name: str
    email: str
    phone: str
    phone_display: str
    age_range: AgeRange | None
    needs_ride: bool
    contacted: bool
    assigned_user_id: UUID | None
    created_at: datetime
    matched: bool = False


# Public forms


class PublicEventOut(StrictModel):
    id: UUID
    name: str
    url_slug: str
    description: str | None
    date: datetime
    end_date: datetime | None
    status: str
    theme: ThemeOut


class RegistrationRequest(StrictModel):
    first_name: Name
    last_name: Name
    phone: Phone = Field(min_length=1)


class SavedFormRequest(StrictModel):
    first_name: Name
    last_name: Name
    phone: Phone = Field(min_length=1)
    email: Email
    needs_ride: bool = False
    age_range: AgeRange | None = None


class SubmissionResponse(StrictModel):
    id: UUID
    ok: bool = True


# Live leads feed


class LiveCommand(StrictModel):
    action: Literal["set_page", "set_page_size", "set_search", "set_filters", "refresh"]
    page: Annotated[int, Field(ge=1)] | None = None
    page_size: int | None = None
    search: str | None = Field(default=None, max_length=200)
    hide_contacted: bool | None = None
    hide_assigned: bool | None = None

    @model_validator(mode="after")
    def _args(self):
        if self.action == "set_page" and self.page is None:
            raise ValueError("set_page requires page")
        if self.action == "set_page_size":
            if self.page_size not in PAGE_SIZE_OPTIONS:
                raise ValueError(f"page_size must be one of {list(PAGE_SIZE_OPTIONS)}")
        if self.action == "set_search" and self.search is None:
            raise ValueError("set_search requires search")
        return self
