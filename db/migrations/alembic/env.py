from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from services.portal.app.tables import METADATA


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Lets `alembic revision --autogenerate` diff against the portal's table definitions.
target_metadata = METADATA

_SYNC_PREFIX = "postgresql+psycopg://"


def _get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        # Migrations run on psycopg3; the portal itself runs on asyncpg.
        for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://"):
            url = url.replace(prefix, _SYNC_PREFIX)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", _SYNC_PREFIX, 1)
        return url
    return config.get_main_option("sqlalchemy.url") or f"{_SYNC_PREFIX}app:app@localhost:5432/portal"


def run_migrations_offline() -> None:
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
