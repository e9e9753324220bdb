"""
Pydantic schemas for the linked-account core.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthFlowState(BaseModel):
    """
    Signed, short-lived payload round-tripped through Google's consent screen.

    Serialised with the camelCase keys of the wire format:
    ``{userId, csrfToken, timestamp, nonce, meta?}``; ``timestamp`` is
    milliseconds since the epoch.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    csrf_token: str = Field(alias="csrfToken")
    timestamp: int
    nonce: str
    meta: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TokenSet(BaseModel):
    """Tokens delivered by the provider. Either field may be absent."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token


class AccountStats(BaseModel):
    total_files: int = Field(0, serialization_alias="totalFiles")
    duplicate_files: int = Field(0, serialization_alias="duplicateFiles")
    total_size: int = Field(0, serialization_alias="totalSize")


class AccountView(BaseModel):
    """A linked account as exposed to callers. Never carries tokens."""

    account_id: str
    user_id: str
    provider: str
    provider_account_id: str
    name: str
    email: str
    status: str
    scopes: List[str] = Field(default_factory=list)
    profile_image: Optional[str] = None
    last_sync_at: Optional[str] = None
    quota_used: int = 0
    quota_total: int = 0
    error_message: Optional[str] = None
    stats: Optional[AccountStats] = None


class FileCount(BaseModel):
    account_id: str
    email: str
    status: str
    file_count: int = 0
    total_size: int = 0


class SyncReport(BaseModel):
    success_count: int = 0
    failed_count: int = 0
    revoked_accounts: List[Dict[str, str]] = Field(default_factory=list)
    errors: List[Dict[str, str]] = Field(default_factory=list)
