"""
Drive API routes: OAuth connect/callback, account listing with stats,
quota refresh and file sync.

Route prefix: /api/v1/drive
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from config.settings import config
from connectors.base import BaseConnector
from connectors.credential_store import ACCOUNT_STATUSES, CredentialStore
from connectors.drive_service import refresh_quota, sync_account_files, sync_user_accounts
from connectors.errors import AccountNotFound, DuplicateAccount, ProviderError
from connectors.oauth_state import NonceLedger, StateTokenCodec, nonce_ledger, state_codec, verify_and_consume
from connectors.registry import ConnectorRegistry
from connectors.runner import AccountRunner
from connectors.schemas import AccountView, FileCount, SyncReport
from connectors.stats import compute_account_stats, compute_file_counts
from database.helpers import ensure_user_exists
from database.models import LinkedAccount

logger = logging.getLogger(__name__)

router = APIRouter(tags=["drive"])

_PROVIDER = "google_drive"
_store: Optional[CredentialStore] = None


# ── Dependencies ───────────────────────────────────────────────────────


def get_store() -> CredentialStore:
    global _store
    if _store is None:
        _store = CredentialStore()
    return _store


def get_connector() -> BaseConnector:
    connector = ConnectorRegistry().get(_PROVIDER)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google Drive is not configured",
        )
    return connector


def get_runner(
    store: CredentialStore = Depends(get_store),
    connector: BaseConnector = Depends(get_connector),
) -> AccountRunner:
    return AccountRunner(store, connector, timeout=config.provider_timeout_seconds)


def get_state_codec() -> StateTokenCodec:
    return state_codec


def get_nonce_ledger() -> NonceLedger:
    return nonce_ledger


async def _owned_account(store: CredentialStore, account_id: str, user_id: str) -> LinkedAccount:
    account = await store.find_by_id(account_id)
    if account is None or str(account.user_id) != str(user_id):
        raise AccountNotFound(account_id)
    return account


def _frontend_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{config.frontend_redirect_url}?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )


# ── OAuth ──────────────────────────────────────────────────────────────


@router.get("/auth-url")
async def get_auth_url(
    purpose: str = Query("add_drive", max_length=64),
    user_id: str = Depends(get_current_user_id),
    connector: BaseConnector = Depends(get_connector),
    codec: StateTokenCodec = Depends(get_state_codec),
) -> Dict[str, str]:
    """Authorization URL carrying a freshly signed, single-use state."""
    state = codec.issue(user_id, {"purpose": purpose})
    return {"auth_url": connector.get_auth_url(state), "provider": connector.provider_name}


@router.get("/callback")
async def oauth_callback(
    state: str = Query(...),
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    session: AsyncSession = Depends(db_session),
    store: CredentialStore = Depends(get_store),
    connector: BaseConnector = Depends(get_connector),
    codec: StateTokenCodec = Depends(get_state_codec),
    ledger: NonceLedger = Depends(get_nonce_ledger),
) -> RedirectResponse:
    """
    Google redirects here after consent.  The state is verified and its nonce
    burned before anything is persisted.
    """
    flow = verify_and_consume(codec, ledger, state)

    if error or not code:
        logger.info("OAuth consent not granted for user %s: %s", flow.user_id, error or "no code")
        return _frontend_redirect(status="error", message=error or "missing_code")

    try:
        token_data = await connector.handle_callback(code)
    except ProviderError as exc:
        logger.error("Code exchange failed for user %s: %s", flow.user_id, exc)
        return _frontend_redirect(status="error", message="code_exchange_failed")

    await ensure_user_exists(session, flow.user_id)
    await session.commit()

    existing = await store.find_by_provider_identity(flow.user_id, token_data["provider_account_id"])
    if existing is not None:
        await store.reactivate(
            existing.account_id,
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            scopes=token_data.get("scopes"),
            name=token_data.get("name"),
            profile_image=token_data.get("profile_image"),
        )
        account_id = existing.account_id
        logger.info("Reconnected Drive account %s for user %s", account_id, flow.user_id)
    else:
        if not token_data.get("refresh_token"):
            return _frontend_redirect(status="error", message="missing_refresh_token")
        try:
            account = await store.create({"user_id": flow.user_id, **token_data})
        except DuplicateAccount:
            return _frontend_redirect(status="error", message="already_linked")
        account_id = account.account_id

    return _frontend_redirect(status="connected", accountId=str(account_id))


# ── Accounts ───────────────────────────────────────────────────────────


class FileCountRequest(BaseModel):
    account_ids: List[str] = Field(..., min_length=1, max_length=200)


@router.get("/accounts")
async def list_accounts(
    include_stats: bool = Query(True),
    account_status: Optional[str] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[AccountView]:
    if account_status is not None and account_status not in ACCOUNT_STATUSES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown status")
    return await compute_account_stats(session, user_id, include_stats=include_stats, status=account_status)


@router.post("/accounts/file-counts")
async def file_counts(
    body: FileCountRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[FileCount]:
    return await compute_file_counts(session, body.account_ids, user_id=user_id)


@router.get("/accounts/{account_id}/quota")
async def account_quota(
    account_id: str,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
    runner: AccountRunner = Depends(get_runner),
) -> Dict[str, Any]:
    await _owned_account(store, account_id, user_id)
    quota = await refresh_quota(runner, store, account_id)
    return {"account_id": account_id, **quota}


@router.post("/accounts/sync")
async def sync_all_accounts(
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
    runner: AccountRunner = Depends(get_runner),
) -> SyncReport:
    from database.session import async_session_factory

    return await sync_user_accounts(runner, store, async_session_factory, user_id)


@router.post("/accounts/{account_id}/sync")
async def sync_account(
    account_id: str,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
    runner: AccountRunner = Depends(get_runner),
) -> Dict[str, Any]:
    from database.session import async_session_factory

    await _owned_account(store, account_id, user_id)
    synced = await sync_account_files(runner, store, async_session_factory, account_id)
    return {"account_id": account_id, "files": synced}
