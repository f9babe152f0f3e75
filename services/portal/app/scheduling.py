from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DEFAULT_EVENT_LENGTH = timedelta(hours=1)

STATUS_ARCHIVED = "Archived"
STATUS_UPCOMING = "Upcoming"
STATUS_ACTIVE = "Active"
STATUS_COMPLETED = "Completed"


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown timezone: {tz_name}") from e


def now() -> datetime:
    return datetime.now(tz=UTC)


def local_to_utc(local_date: str, local_time: str, tz_name: str) -> datetime:
    """
    Combine form fields entered in the organiser's zone ("YYYY-MM-DD", "HH:MM") into a UTC instant.
    """
    d = date.fromisoformat(local_date)
    t = time.fromisoformat(local_time)
    return datetime.combine(d, t, tzinfo=_zone(tz_name)).astimezone(UTC)


def utc_to_local_fields(value: datetime, tz_name: str) -> tuple[str, str]:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    local = value.astimezone(_zone(tz_name))
    return local.date().isoformat(), local.strftime("%H:%M")


def ensure_end_after_start(start: datetime, end: datetime | None) -> datetime:
    if end is None or end <= start:
        return start + DEFAULT_EVENT_LENGTH
    return end


def event_status(start: datetime, end: datetime | None, archived: bool, at: datetime | None = None) -> str:
    if archived:
        return STATUS_ARCHIVED
    at = at or now()
    finish = end or start
    if at < start:
        return STATUS_UPCOMING
    if at <= finish:
        return STATUS_ACTIVE
    return STATUS_COMPLETED
