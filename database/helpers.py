"""
Database helper functions shared by the store, the aggregator and the routes.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User


def to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


def parse_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    """Like :func:`to_uuid` but returns ``None`` for malformed ids."""
    try:
        return to_uuid(value)
    except (ValueError, AttributeError, TypeError):
        return None


async def ensure_user_exists(session: AsyncSession, user_id: str, email: str | None = None) -> None:
    """Create a ``User`` row if one does not already exist (idempotent)."""
    uid = to_uuid(user_id)
    result = await session.execute(select(User.user_id).where(User.user_id == uid))
    if result.scalar_one_or_none() is not None:
        return
    session.add(
        User(
            user_id=uid,
            email=email or f"{uid}@drive-link.local",
            display_name=f"User {str(uid)[:8]}",
        )
    )
    await session.flush()
