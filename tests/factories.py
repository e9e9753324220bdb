"""
Seeding helpers for database-backed tests.
"""

import uuid

from database.models import SyncedFile, User


async def make_user(session_factory, email=None):
    user_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(User(user_id=user_id, email=email or f"{user_id.hex[:8]}@example.com"))
        await session.commit()
    return str(user_id)


async def make_account(store, user_id, *, email="owner@gmail.com", google_id=None, access="access-1", refresh="refresh-1"):
    return await store.create(
        {
            "user_id": user_id,
            "provider_account_id": google_id or uuid.uuid4().hex,
            "email": email,
            "name": "Owner",
            "access_token": access,
            "refresh_token": refresh,
            "scopes": ["https://www.googleapis.com/auth/drive"],
        }
    )


async def add_files(session_factory, account, files):
    """files: iterable of (size, is_duplicate)."""
    async with session_factory() as session:
        for size, dup in files:
            session.add(
                SyncedFile(
                    account_id=account.account_id,
                    user_id=account.user_id,
                    provider_file_id=uuid.uuid4().hex,
                    name=f"file-{size}",
                    size=size,
                    is_duplicate=dup,
                )
            )
        await session.commit()
