"""
Engine, sessions and schema setup for the card ledger and chat store.

REST requests get one session per request; socket handlers take the factory
and open a short session per event.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tradepost.config import settings
from tradepost.models.db import Base

# One pool per process; pre-ping drops connections the server has closed
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Objects stay readable after commit; routers convert them after the unit of work
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency that provides the session factory.

    Long-lived WebSocket handlers open one short unit of work per event
    instead of holding a request-scoped session.
    """
    return async_session_factory


async def get_session(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Committed when the endpoint returns and rolled back when any exception
    escapes it, so a failed operation never leaves a partial write behind.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Called from the application lifespan."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
