"""Request-scoped database sessions."""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pillar.infra.db import base


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work outside a request (sweep, worker). Overridable in tests."""
    if base.AsyncSessionLocal is None:
        raise RuntimeError("Database is not configured (no session factory)")
    return base.AsyncSessionLocal


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    factory = get_session_factory()
    async with factory() as session:
        yield session
