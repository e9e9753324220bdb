"""
Account runner: the single path through which stored Drive credentials are
used.

``run(account_id, operation)``:

1. Load the account (``AccountNotFound`` if absent).
2. Refuse revoked accounts before any network call (``AccountRevoked``).
3. Build a Drive client from the stored tokens with a rotation listener
   attached.
4. Await ``operation(client)`` under the caller's deadline.
5. On an ``invalid_grant``-shaped failure, mark the account revoked (access
   token cleared) and raise ``TokenExpired``; any other error is re-raised
   unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Optional, TypeVar

from connectors.base import BaseConnector
from connectors.classifier import classify_error
from connectors.credential_store import STATUS_REVOKED, CredentialStore
from connectors.encryption import decrypt_token
from connectors.errors import AccountNotFound, AccountRevoked, ErrorKind, TokenExpired
from connectors.rotation import TokenRotationListener

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[..., Awaitable[T]]


class AccountRunner:
    def __init__(
        self,
        store: CredentialStore,
        connector: Optional[BaseConnector] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if connector is None:
            from connectors.google_drive import GoogleDriveConnector

            connector = GoogleDriveConnector()
        self._store = store
        self._connector = connector
        self._timeout = timeout

    async def run(
        self,
        account_id: str | uuid.UUID,
        operation: Operation[T],
        *,
        timeout: Optional[float] = None,
    ) -> T:
        # Always re-read: a revocation written by another request must be seen here.
        account = await self._store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        if account.status == STATUS_REVOKED:
            raise AccountRevoked(account.account_id, account.email)

        listener = TokenRotationListener(self._store, account.account_id)
        deadline = timeout if timeout is not None else self._timeout

        try:
            async with self._connector.build_client(
                access_token=decrypt_token(account.access_token),
                refresh_token=decrypt_token(account.refresh_token) or None,
                on_tokens=listener,
                timeout=deadline,
            ) as client:
                if deadline is not None:
                    return await asyncio.wait_for(operation(client), deadline)
                return await operation(client)
        except Exception as exc:
            if classify_error(exc) is not ErrorKind.PERMANENT_REVOCATION:
                raise
            await self._revoke(account.account_id, account.email, exc)
            raise TokenExpired(account.account_id, account.email) from exc

    async def _revoke(self, account_id: uuid.UUID, email: str, cause: Exception) -> None:
        try:
            await self._store.mark_revoked(account_id, reason=f"Access revoked: {cause}"[:1000])
        except Exception:
            logger.exception("Failed to mark account %s as revoked", account_id)
            return
        logger.error("Marked Drive account %s (%s) as revoked: %s", account_id, email, cause)
