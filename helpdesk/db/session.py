# helpdesk/db/session.py
from __future__ import annotations

import logging
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from helpdesk.core.config import settings
from helpdesk.core.errors import PersistenceFailure

log = logging.getLogger(__name__)

engine = create_async_engine(settings.database_url, pool_pre_ping=True, future=True)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    async with AsyncSessionLocal() as session:
        yield session


async def commit_or_raise(db: AsyncSession, message: str) -> None:
    """
    Commit the unit of work; on a datastore error roll back, log the cause
    and raise PersistenceFailure(message) so the caller sees a generic 500.
    """
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.exception("commit_failed: %s", message)
        raise PersistenceFailure(message) from e
