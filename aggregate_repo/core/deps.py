"""
FastAPI dependency helpers: the caller's AppSession and a DB session.
"""
from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from aggregate_repo.core.app_session import AppSession
from aggregate_repo.core.security import app_session_from_token
from aggregate_repo.db.session import get_async_session

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# PUBLIC_INTERFACE
async def get_app_session(token: str = Depends(oauth2_scheme)) -> AppSession:
    """
    Resolve the caller's AppSession from the Authorization bearer token.

    Raises:
        HTTPException: 401 Unauthorized if the token is invalid or malformed.
    """
    try:
        return app_session_from_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except ValueError:
        logger.warning("Rejected token with malformed identity claims")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


# PUBLIC_INTERFACE
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one AsyncSession per request; repositories built on it share the unit of work."""
    async for session in get_async_session():
        yield session
