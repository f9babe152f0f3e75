from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config


REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

os.environ.setdefault("OTEL_ENABLED", "false")


@pytest.fixture(scope="session")
def postgres_url() -> str:
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:16")
        container.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"docker unavailable for postgres container: {e}")
    try:
        yield container.get_connection_url()
    finally:
        container.stop()


@pytest.fixture(scope="session")
def migrated_db(postgres_url: str) -> dict[str, str]:
    # Normalize testcontainers URL (may be postgresql:// or postgresql+psycopg2://).
    base = postgres_url.replace("postgresql+psycopg2://", "postgresql://")
    sync_url = base.replace("postgresql://", "postgresql+psycopg://")
    async_url = base.replace("postgresql://", "postgresql+asyncpg://")

    os.environ["DATABASE_URL"] = sync_url
    command.upgrade(Config(str(REPO_ROOT / "db" / "migrations" / "alembic.ini")), "head")

    # Restore async url for app runtime
    os.environ["DATABASE_URL"] = async_url
    return {"sync": sync_url, "async": async_url}


@pytest.fixture(scope="session")
def migrated_seeded_db(migrated_db: dict[str, str]) -> dict[str, str]:
    from db.seed import seed

    counts = seed(migrated_db["sync"], seed_value=1337, events_n=6, leads_n=40, password="password123")
    return {**migrated_db, **{f"{k}_count": str(v) for k, v in counts.items()}}
