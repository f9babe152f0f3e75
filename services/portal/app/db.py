from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from services.portal.app.settings import SETTINGS


def create_engine(database_url: str | None = None) -> AsyncEngine:
    # NullPool: WebSocket feeds and tests open sessions from different event loops.
    return create_async_engine(database_url or SETTINGS.database_url, pool_pre_ping=True, poolclass=NullPool)


ENGINE = create_engine()
SESSIONMAKER = async_sessionmaker(ENGINE, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SESSIONMAKER() as session:
        yield session


async def dispose_engine() -> None:
    await ENGINE.dispose()
