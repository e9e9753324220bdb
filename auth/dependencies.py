"""
FastAPI dependencies for authentication.

Provides ``db_session`` and ``get_current_user_id``, used by every protected
Drive route.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.session_tokens import verify_session_token
from database.session import get_db_session

_bearer_scheme = HTTPBearer()


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Verify the Bearer session token and return the local ``user_id``."""
    return verify_session_token(credentials.credentials)
