"""
Drive services: quota refresh and file sync, always run through the
:class:`AccountRunner` so credentials are never used directly.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.credential_store import STATUS_REVOKED, CredentialStore
from connectors.errors import DriveAuthError
from connectors.google_drive import DriveClient
from connectors.runner import AccountRunner
from connectors.schemas import SyncReport
from database.helpers import parse_uuid
from database.models import LinkedAccount, SyncedFile

logger = logging.getLogger(__name__)

_FOLDER_MIME = "application/vnd.google-apps.folder"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _counts_as_duplicate_candidate(f: Dict[str, Any]) -> bool:
    return f.get("mimeType") != _FOLDER_MIME and not f.get("trashed")


def _duplicate_keys(files: List[Dict[str, Any]]) -> set:
    """(name, size) pairs seen more than once among non-folder, non-trashed files."""
    counts = Counter(
        (f.get("name"), int(f.get("size") or 0)) for f in files if _counts_as_duplicate_candidate(f)
    )
    return {key for key, n in counts.items() if n > 1}


async def refresh_quota(runner: AccountRunner, store: CredentialStore, account_id: str | uuid.UUID) -> Dict[str, int]:
    """Read the storage quota from Google and cache it on the account."""
    quota = await runner.run(account_id, lambda client: client.get_about_quota())
    await store.update_quota(account_id, quota["used"], quota["total"])
    return quota


async def _upsert_files(
    session: AsyncSession,
    account: LinkedAccount,
    files: List[Dict[str, Any]],
) -> int:
    duplicates = _duplicate_keys(files)
    result = await session.execute(
        select(SyncedFile).where(SyncedFile.account_id == account.account_id)
    )
    existing = {row.provider_file_id: row for row in result.scalars().all()}
    seen = set()

    for f in files:
        provider_id = f["id"]
        if provider_id in seen:
            continue
        seen.add(provider_id)
        size = int(f.get("size") or 0)
        values = {
            "name": f.get("name") or provider_id,
            "mime_type": f.get("mimeType") or "application/octet-stream",
            "size": size,
            "trashed": bool(f.get("trashed")),
            "is_duplicate": _counts_as_duplicate_candidate(f) and (f.get("name"), size) in duplicates,
            "modified_time": _parse_time(f.get("modifiedTime")),
        }
        row = existing.get(provider_id)
        if row is None:
            session.add(
                SyncedFile(
                    account_id=account.account_id,
                    user_id=account.user_id,
                    provider_file_id=provider_id,
                    **values,
                )
            )
        else:
            for key, value in values.items():
                setattr(row, key, value)

    for provider_id, row in existing.items():
        if provider_id not in seen:
            await session.delete(row)

    await session.flush()
    return len(seen)


async def sync_account_files(
    runner: AccountRunner,
    store: CredentialStore,
    session_factory: async_sessionmaker[AsyncSession],
    account_id: str | uuid.UUID,
) -> int:
    """Mirror one account's Drive listing into ``synced_files``. Returns the file count."""

    async def _list(client: DriveClient) -> List[Dict[str, Any]]:
        return await client.list_files()

    files = await runner.run(account_id, _list)
    account = await store.find_by_id(account_id)
    if account is None:
        return 0

    async with session_factory() as session:
        count = await _upsert_files(session, account, files)
        await session.commit()
    await store.touch_sync(account.account_id)
    logger.info("Synced %d files for account %s", count, account.account_id)
    return count


async def sync_user_accounts(
    runner: AccountRunner,
    store: CredentialStore,
    session_factory: async_sessionmaker[AsyncSession],
    user_id: str | uuid.UUID,
) -> SyncReport:
    """Sync every non-revoked account of a user; one failing account never stops the batch.

    Accounts left in ``error`` by an earlier run are retried; a successful sync
    puts them back to ``active``.
    """
    report = SyncReport()
    uid = parse_uuid(user_id)
    if uid is None:
        return report
    for account in await store.find_by_user(uid):
        if account.status == STATUS_REVOKED:
            continue
        try:
            await sync_account_files(runner, store, session_factory, account.account_id)
            report.success_count += 1
        except DriveAuthError as exc:
            report.failed_count += 1
            report.revoked_accounts.append({"id": exc.account_id, "email": exc.account_email})
        except Exception as exc:
            report.failed_count += 1
            logger.warning("Sync failed for account %s: %s", account.account_id, exc)
            report.errors.append(
                {"account_id": str(account.account_id), "email": account.email, "error": str(exc) or type(exc).__name__}
            )
            try:
                await store.mark_error(account.account_id, f"Sync failed: {exc}")
            except Exception:
                logger.exception("Could not record sync error for account %s", account.account_id)
    return report
