from __future__ import annotations

import argparse
import base64
import hashlib
import os
import random
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import sqlalchemy as sa

from db.settings import SETTINGS
from services.portal.app.passwords import hash_password
from services.portal.app.tables import attendees, event_assignments, events, profile_permissions, profiles, saved
from services.portal.app.themes import PREDEFINED_THEMES


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _det_uuid(*parts: str) -> uuid.UUID:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return uuid.UUID(h[:32])


@dataclass(frozen=True)
class StaffSpec:
    key: str
    email: str
    first_name: str
    last_name: str
    permission_level: int


STAFF: list[StaffSpec] = [
    StaffSpec("admin", "admin@example.com", "Avery", "Admin", 0),
    StaffSpec("manager_1", "morgan@example.com", "Morgan", "Lee", 1),
    StaffSpec("manager_2", "jordan@example.com", "Jordan", "Reyes", 1),
    StaffSpec("regular", "casey@example.com", "Casey", "Nguyen", 2),
]

EVENT_NAMES = [
    "Fall Kickoff",
    "Community Dinner",
    "Worship Night",
    "Student Retreat",
    "Family Picnic",
    "Volunteer Orientation",
    "Christmas Concert",
    "Spring Outreach",
    "Summer Camp Info Night",
    "Prayer Breakfast",
]

FIRST_NAMES = [
    "Ava", "Liam", "Olivia", "Noah", "Emma", "Elijah", "Sophia", "Mateo", "Isabella", "Lucas",
    "Mia", "Levi", "Amelia", "Ezra", "Harper", "Asher", "Evelyn", "Leo", "Abigail", "Kai",
]
LAST_NAMES = [
    "Smith", "Johnson", "Garcia", "Brown", "Davis", "Martinez", "Lopez", "Wilson", "Anderson", "Thomas",
    "Moore", "Jackson", "Martin", "Lee", "Perez", "Thompson", "White", "Harris", "Clark", "Lewis",
]
AGE_RANGES = ["Child", "Young Adult", "Adult"]


def _phone(rng: random.Random) -> str:
    return f"{rng.randint(200, 989)}{rng.randint(200, 999)}{rng.randint(0, 9999):04d}"


def seed(
    database_url: str,
    seed_value: int,
    events_n: int,
    leads_n: int,
    *,
    password: str | None = None,
) -> dict[str, int]:
    """Wipe the portal tables and load a reproducible data set. Returns row counts per table."""
    rng = random.Random(seed_value)
    now = _now().replace(minute=0, second=0, microsecond=0)
    engine = sa.create_engine(database_url, future=True)

    # One salt per seed run keeps rows reproducible for a given seed value.
    salt = hashlib.sha256(f"salt:{seed_value}".encode("utf-8")).digest()[:16]
    pw_hash, pw_salt = hash_password(password or SETTINGS.seed_password, base64.b64encode(salt).decode("utf-8"))

    profile_rows: list[dict] = []
    permission_rows: list[dict] = []
    for s in STAFF:
        user_id = _det_uuid("profile", s.key)
        profile_rows.append(
            dict(
                user_id=user_id,
                email=s.email,
                first_name=s.first_name,
                last_name=s.last_name,
                password_hash=pw_hash,
                password_salt=pw_salt,
                created_at=now,
                updated_at=now,
            )
        )
        permission_rows.append(dict(user_id=user_id, permission_level=s.permission_level, updated_at=now))
    managers = [r["user_id"] for r, s in zip(profile_rows, STAFF) if s.permission_level == 1]

    event_rows: list[dict] = []
    for i in range(events_n):
        name = EVENT_NAMES[i % len(EVENT_NAMES)]
        if i >= len(EVENT_NAMES):
            name = f"{name} {i // len(EVENT_NAMES) + 1}"
        # Spread events from roughly two months back to two months ahead.
        start = (now + timedelta(days=rng.randint(-60, 60))).replace(hour=rng.choice([10, 12, 18, 19]))
        theme = PREDEFINED_THEMES[i % len(PREDEFINED_THEMES)]
        event_rows.append(
            dict(
                id=_det_uuid("event", str(seed_value), str(i)),
                name=name,
                url_slug=f"{name.lower().replace(' ', '-')}-{i + 1}",
                description=f"{name} for the whole community.",
                date=start,
                end_date=start + timedelta(hours=rng.choice([1, 2, 3])),
                archived=rng.random() < 0.1,
                theme_name=theme.name,
                theme_from=theme.from_color,
                theme_through=theme.through_color,
                theme_to=theme.to_color,
                created_at=now,
                updated_at=now,
            )
        )

    attendee_rows: list[dict] = []
    for e in event_rows:
        for j in range(rng.randint(3, 12)):
            attendee_rows.append(
                dict(
                    id=_det_uuid("attendee", str(e["id"]), str(j)),
                    event_id=e["id"],
                    first_name=rng.choice(FIRST_NAMES),
                    last_name=rng.choice(LAST_NAMES),
                    phone=_phone(rng),
                    created_at=e["date"] - timedelta(days=rng.randint(0, 14)),
                )
            )

    saved_rows: list[dict] = []
    for k in range(leads_n):
        # Some leads come from attendees so the matched flag has something to find.
        if attendee_rows and rng.random() < 0.3:
            a = rng.choice(attendee_rows)
            event_id, first, last, phone = a["event_id"], a["first_name"], a["last_name"], a["phone"]
        else:
            e = rng.choice(event_rows) if event_rows and rng.random() < 0.9 else None
            event_id = e["id"] if e else None
            first, last, phone = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES), _phone(rng)
        created = now - timedelta(minutes=rng.randint(0, 60 * 24 * 90))
        assignee = rng.choice(managers) if managers and rng.random() < 0.5 else None
        saved_rows.append(
            dict(
                id=_det_uuid("saved", str(seed_value), str(k)),
                event_id=event_id,
                first_name=first,
                last_name=last,
                email=f"{first}.{last}.{k}@example.org".lower(),
                phone=phone,
                age_range=rng.choice(AGE_RANGES + [None]),
                needs_ride=rng.random() < 0.15,
                contacted=rng.random() < 0.35,
                notes=None,
                assigned_user_id=assignee,
                created_at=created,
                updated_at=created,
            )
        )

    assignment_rows = [
        dict(user_id=m, event_id=e["id"], created_at=now)
        for m in managers
        for e in rng.sample(event_rows, k=min(3, len(event_rows)))
    ]

    with engine.begin() as conn:
        conn.execute(
            sa.text("TRUNCATE TABLE event_assignments, saved, attendees, events, profile_permissions, profiles CASCADE")
        )
        conn.execute(profiles.insert(), profile_rows)
        conn.execute(profile_permissions.insert(), permission_rows)
        if event_rows:
            conn.execute(events.insert(), event_rows)
        if attendee_rows:
            conn.execute(attendees.insert(), attendee_rows)
        if saved_rows:
            conn.execute(saved.insert(), saved_rows)
        if assignment_rows:
            conn.execute(event_assignments.insert(), assignment_rows)

    engine.dispose()
    return {
        "profiles": len(profile_rows),
        "events": len(event_rows),
        "attendees": len(attendee_rows),
        "saved": len(saved_rows),
        "event_assignments": len(assignment_rows),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Load a deterministic data set into the portal database.")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL") or SETTINGS.database_url)
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--events", type=int, default=12)
    parser.add_argument("--leads", type=int, default=150)
    parser.add_argument("--password", default=None, help="Password for every seeded staff account.")
    args = parser.parse_args()

    url = args.database_url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    counts = seed(url, args.seed, args.events, args.leads, password=args.password)
    for table, n in counts.items():
        print(f"{table}: {n}")


if __name__ == "__main__":
    main()
