from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm.exc import StaleDataError

from aggregate_repo.core.errors import ConcurrencyError
from .config import get_settings

logger = logging.getLogger(__name__)

_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_pre_ping=True,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = create_session_maker(_ENGINE)


# PUBLIC_INTERFACE
def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build a session factory with the options the repositories rely on.

    Instances stay loaded after commit (expire_on_commit=False) so version
    tokens and generated keys remain readable without another round trip.
    """
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.
    Ensures engine/session factory is initialized.
    """
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    async with _SESSION_MAKER() as session:
        yield session


# PUBLIC_INTERFACE
async def commit_session(session: AsyncSession) -> None:
    """
    Commit the session, translating a failed versioned UPDATE/DELETE into ConcurrencyError.

    The session is rolled back before the error propagates so it can be reused.
    """
    try:
        await session.commit()
    except StaleDataError as exc:
        logger.debug("Commit rejected by version check: %s", exc)
        await session.rollback()
        raise ConcurrencyError() from exc


# PUBLIC_INTERFACE
@asynccontextmanager
async def unit_of_work(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager scoping one session to one logical unit of work.

    Usage:
        async with unit_of_work() as session:
            repo = DocumentRepository(session, app_session)
            await repo.update(doc)
        # committed here; rolled back if the block raised

    Parameters:
      session_maker: optional factory; defaults to the global one built from settings.
    """
    if session_maker is None:
        _ensure_engine_initialized()
        session_maker = _SESSION_MAKER
    assert session_maker is not None
    async with session_maker() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        await commit_session(session)
