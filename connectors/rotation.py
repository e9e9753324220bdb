"""
Token rotation listener: persists tokens that Google hands back mid-call.

One listener is bound to one account and passed to the Drive client as its
``on_tokens`` callback.  It runs on the hot path of the caller's operation,
so a failed write is logged and never becomes the operation's error.
"""

from __future__ import annotations

import logging
import uuid

from connectors.credential_store import CredentialStore
from connectors.schemas import TokenSet

logger = logging.getLogger(__name__)


class TokenRotationListener:
    def __init__(self, store: CredentialStore, account_id: str | uuid.UUID) -> None:
        self._store = store
        self.account_id = str(account_id)
        self.persisted = 0

    async def __call__(self, tokens: TokenSet) -> None:
        if tokens.is_empty:
            return
        try:
            written = await self._store.update_tokens(
                self.account_id,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
        except Exception:
            logger.exception("Failed to persist rotated tokens for account %s", self.account_id)
            return

        if written:
            self.persisted += 1
            logger.info(
                "Persisted rotated tokens for account %s (access=%s, refresh=%s)",
                self.account_id,
                bool(tokens.access_token),
                bool(tokens.refresh_token),
            )
        else:
            logger.warning(
                "Dropped rotated tokens for account %s: account missing or revoked",
                self.account_id,
            )
