"""
Typed errors raised by the linked-account core.

State-verification failures, account lookups and Drive credential failures
each have their own branch so the HTTP layer can map them to 400 / 404 / 401
without string matching.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Outcome of classifying a provider failure."""

    TRANSIENT = "transient"
    PERMANENT_REVOCATION = "permanent_revocation"
    UNRELATED = "unrelated"


# ── OAuth state verification ────────────────────────────────────────────


class StateVerificationError(Exception):
    """Base for every rejected authorization state."""

    kind = "invalid_state"
    user_message = "Invalid or expired authorization, please retry"

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason or self.kind)
        self.reason = reason or self.kind


class MalformedToken(StateVerificationError):
    kind = "malformed_token"


class SignatureMismatch(StateVerificationError):
    kind = "signature_mismatch"


class StateExpired(StateVerificationError):
    kind = "expired"


class MissingFields(StateVerificationError):
    kind = "missing_fields"


class ReplayedNonce(StateVerificationError):
    kind = "replayed_nonce"


# ── Accounts ────────────────────────────────────────────────────────────


class AccountNotFound(LookupError):
    def __init__(self, account_id: Any) -> None:
        super().__init__(f"Drive account not found: {account_id}")
        self.account_id = str(account_id)


class DuplicateAccount(Exception):
    def __init__(self, provider_account_id: str) -> None:
        super().__init__(f"Drive account {provider_account_id} is already linked")
        self.provider_account_id = provider_account_id


class DriveAuthError(Exception):
    """Credential failure that needs the user to reconnect the account."""

    is_auth_error = True
    status_code = 401

    def __init__(self, message: str, account_id: Any, account_email: str) -> None:
        super().__init__(message)
        self.message = message
        self.account_id = str(account_id)
        self.account_email = account_email

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "needsReconnect": True,
            "accountId": self.account_id,
            "accountEmail": self.account_email,
        }


class AccountRevoked(DriveAuthError):
    def __init__(self, account_id: Any, account_email: str) -> None:
        super().__init__(
            "Drive account is disconnected. Please reconnect your Google Drive account.",
            account_id,
            account_email,
        )


class TokenExpired(DriveAuthError):
    def __init__(self, account_id: Any, account_email: str) -> None:
        super().__init__(
            "Drive account authentication expired. Please reconnect your Google Drive account.",
            account_id,
            account_email,
        )


# ── Provider ────────────────────────────────────────────────────────────


class ProviderError(Exception):
    """Non-2xx answer from Google (API or token endpoint)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.endpoint = endpoint
