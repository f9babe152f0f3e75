from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest


def test_local_form_fields_convert_to_utc() -> None:
    from services.portal.app.scheduling import local_to_utc

    # Chicago is UTC-5 in October (CDT).
    assert local_to_utc("2026-10-17", "12:00", "America/Chicago") == datetime(2026, 10, 17, 17, 0, tzinfo=UTC)
    # And UTC-6 in January (CST).
    assert local_to_utc("2026-01-10", "09:30", "America/Chicago") == datetime(2026, 1, 10, 15, 30, tzinfo=UTC)


def test_utc_to_local_fields_round_trips_form_values() -> None:
    from services.portal.app.scheduling import utc_to_local_fields

    assert utc_to_local_fields(datetime(2026, 10, 17, 17, 0, tzinfo=UTC), "America/Chicago") == ("2026-10-17", "12:00")
    # Naive values are read as UTC.
    assert utc_to_local_fields(datetime(2026, 10, 18, 2, 15), "America/Chicago") == ("2026-10-17", "21:15")


def test_unknown_timezone_is_rejected() -> None:
    from services.portal.app.scheduling import local_to_utc

    with pytest.raises(ValueError, match="unknown timezone"):
        local_to_utc("2026-10-17", "12:00", "Mars/Olympus_Mons")


def test_end_defaults_to_one_hour_after_start() -> None:
    from services.portal.app.scheduling import ensure_end_after_start

    start = datetime(2026, 10, 17, 17, 0, tzinfo=UTC)
    assert ensure_end_after_start(start, None) == start + timedelta(hours=1)
    assert ensure_end_after_start(start, start) == start + timedelta(hours=1)
    assert ensure_end_after_start(start, start - timedelta(minutes=5)) == start + timedelta(hours=1)
    later = start + timedelta(hours=3)
    assert ensure_end_after_start(start, later) == later


def test_event_status_follows_the_clock() -> None:
    from services.portal.app.scheduling import event_status

    start = datetime(2026, 10, 17, 17, 0, tzinfo=UTC)
    end = start + timedelta(hours=2)
    assert event_status(start, end, False, at=start - timedelta(minutes=1)) == "Upcoming"
    assert event_status(start, end, False, at=start) == "Active"
    assert event_status(start, end, False, at=end) == "Active"
    assert event_status(start, end, False, at=end + timedelta(seconds=1)) == "Completed"
    assert event_status(start, None, False, at=start + timedelta(seconds=1)) == "Completed"
    assert event_status(start, end, True, at=start) == "Archived"


def test_resolve_schedule_fills_missing_end_parts() -> None:
    from services.portal.app.events import resolve_schedule

    start, end = resolve_schedule("UTC", "2026-10-17", "12:00", None, None)
    assert start == datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
    assert end == start + timedelta(hours=1)

    start, end = resolve_schedule("UTC", "2026-10-17", "12:00", None, "15:30")
    assert end == datetime(2026, 10, 17, 15, 30, tzinfo=UTC)

    start, end = resolve_schedule("UTC", "2026-10-17", "22:00", "2026-10-18", "01:00")
    assert end == datetime(2026, 10, 18, 1, 0, tzinfo=UTC)
