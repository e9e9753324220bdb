"""
Credential store: persisted Drive account records and their tokens.

Every operation opens its own short session and touches exactly one row, so
writes for different accounts never contend.  Tokens are encrypted on the
way in; callers decrypt with :func:`connectors.encryption.decrypt_token`
only when building a provider client.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import encrypt_token
from connectors.errors import DuplicateAccount
from database.helpers import parse_uuid, to_uuid
from database.models import LinkedAccount

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_ERROR = "error"
STATUS_REVOKED = "revoked"
ACCOUNT_STATUSES = (STATUS_ACTIVE, STATUS_ERROR, STATUS_REVOKED)


class CredentialStore:
    """Row-level reads and writes on ``linked_accounts``."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        if session_factory is None:
            from database.session import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    # ── Reads ───────────────────────────────────────────────────────────

    async def find_by_id(self, account_id: str | uuid.UUID) -> Optional[LinkedAccount]:
        aid = parse_uuid(account_id)
        if aid is None:
            return None
        async with self._session_factory() as session:
            return await session.get(LinkedAccount, aid)

    async def find_by_user(self, user_id: str | uuid.UUID, status: Optional[str] = None) -> List[LinkedAccount]:
        uid = parse_uuid(user_id)
        if uid is None:
            return []
        stmt = select(LinkedAccount).where(LinkedAccount.user_id == uid)
        if status:
            stmt = stmt.where(LinkedAccount.status == status)
        async with self._session_factory() as session:
            result = await session.execute(stmt.order_by(LinkedAccount.created_at))
            return list(result.scalars().all())

    async def find_by_provider_identity(
        self, user_id: str | uuid.UUID, provider_account_id: str
    ) -> Optional[LinkedAccount]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LinkedAccount).where(
                    LinkedAccount.user_id == to_uuid(user_id),
                    LinkedAccount.provider_account_id == provider_account_id,
                )
            )
            return result.scalar_one_or_none()

    # ── Writes ──────────────────────────────────────────────────────────

    async def create(self, record: Dict[str, Any]) -> LinkedAccount:
        """
        Insert a new linked account.

        ``record`` keys: user_id, provider_account_id, email, access_token,
        refresh_token, and optionally name, scopes, profile_image, provider.
        Raises :class:`DuplicateAccount` if the user already linked this
        Google account.
        """
        account = LinkedAccount(
            account_id=uuid.uuid4(),
            user_id=to_uuid(record["user_id"]),
            provider=record.get("provider", "google_drive"),
            provider_account_id=record["provider_account_id"],
            name=record.get("name") or record["email"],
            email=record["email"],
            access_token=encrypt_token(record.get("access_token")),
            refresh_token=encrypt_token(record.get("refresh_token") or ""),
            status=STATUS_ACTIVE,
            scopes=list(record.get("scopes") or []),
            profile_image=record.get("profile_image"),
        )
        async with self._session_factory() as session:
            session.add(account)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateAccount(record["provider_account_id"]) from exc
            await session.refresh(account)
        logger.info("Linked Drive account %s for user %s", account.account_id, account.user_id)
        return account

    async def reactivate(
        self,
        account_id: str | uuid.UUID,
        *,
        access_token: str,
        refresh_token: Optional[str],
        scopes: Optional[List[str]] = None,
        name: Optional[str] = None,
        profile_image: Optional[str] = None,
    ) -> bool:
        """Reconnect an existing record after fresh consent (any status → active)."""
        values: Dict[str, Any] = {
            "access_token": encrypt_token(access_token),
            "status": STATUS_ACTIVE,
            "error_message": None,
            "last_refreshed_at": datetime.now(timezone.utc),
        }
        # Google omits the refresh token on re-consent unless it was revoked.
        if refresh_token:
            values["refresh_token"] = encrypt_token(refresh_token)
        if scopes is not None:
            values["scopes"] = list(scopes)
        if name:
            values["name"] = name
        if profile_image:
            values["profile_image"] = profile_image
        return await self._update(account_id, values)

    async def update_tokens(
        self,
        account_id: str | uuid.UUID,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> bool:
        """
        Persist rotated tokens.  Only delivered fields are written, and the
        write never applies to a revoked account.  Returns False when nothing
        was written.
        """
        values: Dict[str, Any] = {}
        if access_token:
            values["access_token"] = encrypt_token(access_token)
        if refresh_token:
            values["refresh_token"] = encrypt_token(refresh_token)
        if not values:
            return False
        values["last_refreshed_at"] = datetime.now(timezone.utc)
        return await self._update(account_id, values, unless_revoked=True)

    async def mark_revoked(self, account_id: str | uuid.UUID, reason: Optional[str] = None) -> bool:
        """Set status=revoked and clear the access token in one statement."""
        return await self._update(
            account_id,
            {
                "status": STATUS_REVOKED,
                "access_token": None,
                "error_message": reason or "Access revoked by provider",
            },
        )

    async def mark_error(self, account_id: str | uuid.UUID, message: str) -> bool:
        return await self._update(
            account_id,
            {"status": STATUS_ERROR, "error_message": message[:1000]},
            unless_revoked=True,
        )

    async def touch_sync(self, account_id: str | uuid.UUID) -> bool:
        return await self._update(
            account_id,
            {"last_sync_at": datetime.now(timezone.utc), "status": STATUS_ACTIVE, "error_message": None},
            unless_revoked=True,
        )

    async def update_quota(self, account_id: str | uuid.UUID, used: int, total: int) -> bool:
        return await self._update(account_id, {"quota_used": int(used), "quota_total": int(total)})

    async def _update(
        self,
        account_id: str | uuid.UUID,
        values: Dict[str, Any],
        *,
        unless_revoked: bool = False,
    ) -> bool:
        aid = parse_uuid(account_id)
        if aid is None:
            return False
        stmt = update(LinkedAccount).where(LinkedAccount.account_id == aid)
        if unless_revoked:
            stmt = stmt.where(LinkedAccount.status != STATUS_REVOKED)
        async with self._session_factory() as session:
            result = await session.execute(stmt.values(**values))
            await session.commit()
            return result.rowcount > 0
