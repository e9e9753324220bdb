"""
Stats aggregator: per-account file statistics in one grouped query.

Files are aggregated per ``account_id`` in a subquery and outer-joined to
the accounts, so N accounts cost one round trip.  Token columns are never
selected.
"""

from __future__ import annotations

import uuid
from typing import Iterable, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.schemas import AccountStats, AccountView, FileCount
from database.helpers import parse_uuid
from database.models import LinkedAccount, SyncedFile

_PUBLIC_COLUMNS = (
    LinkedAccount.account_id,
    LinkedAccount.user_id,
    LinkedAccount.provider,
    LinkedAccount.provider_account_id,
    LinkedAccount.name,
    LinkedAccount.email,
    LinkedAccount.status,
    LinkedAccount.scopes,
    LinkedAccount.profile_image,
    LinkedAccount.last_sync_at,
    LinkedAccount.quota_used,
    LinkedAccount.quota_total,
    LinkedAccount.error_message,
)


def _file_totals():
    return (
        select(
            SyncedFile.account_id.label("account_id"),
            func.count(SyncedFile.file_id).label("total_files"),
            func.sum(case((SyncedFile.is_duplicate.is_(True), 1), else_=0)).label("duplicate_files"),
            func.sum(func.coalesce(SyncedFile.size, 0)).label("total_size"),
        )
        .group_by(SyncedFile.account_id)
        .subquery("file_totals")
    )


def _to_view(row, stats: Optional[AccountStats] = None) -> AccountView:
    return AccountView(
        account_id=str(row.account_id),
        user_id=str(row.user_id),
        provider=row.provider,
        provider_account_id=row.provider_account_id,
        name=row.name,
        email=row.email,
        status=row.status,
        scopes=list(row.scopes or []),
        profile_image=row.profile_image,
        last_sync_at=row.last_sync_at.isoformat() if row.last_sync_at else None,
        quota_used=row.quota_used or 0,
        quota_total=row.quota_total or 0,
        error_message=row.error_message,
        stats=stats,
    )


async def compute_account_stats(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    *,
    include_stats: bool = True,
    status: Optional[str] = None,
) -> List[AccountView]:
    """Accounts owned by *user_id*, optionally with file totals. Malformed ids own nothing."""
    uid = parse_uuid(user_id)
    if uid is None:
        return []
    conditions = [LinkedAccount.user_id == uid]
    if status:
        conditions.append(LinkedAccount.status == status)

    if not include_stats:
        result = await session.execute(
            select(*_PUBLIC_COLUMNS).where(*conditions).order_by(LinkedAccount.created_at)
        )
        return [_to_view(row) for row in result.all()]

    totals = _file_totals()
    stmt = (
        select(
            *_PUBLIC_COLUMNS,
            func.coalesce(totals.c.total_files, 0).label("total_files"),
            func.coalesce(totals.c.duplicate_files, 0).label("duplicate_files"),
            func.coalesce(totals.c.total_size, 0).label("total_size"),
        )
        .outerjoin(totals, totals.c.account_id == LinkedAccount.account_id)
        .where(*conditions)
        .order_by(LinkedAccount.created_at)
    )
    result = await session.execute(stmt)
    return [
        _to_view(
            row,
            AccountStats(
                total_files=int(row.total_files),
                duplicate_files=int(row.duplicate_files),
                total_size=int(row.total_size),
            ),
        )
        for row in result.all()
    ]


async def compute_file_counts(
    session: AsyncSession,
    account_ids: Iterable[str | uuid.UUID],
    user_id: Optional[str | uuid.UUID] = None,
) -> List[FileCount]:
    """File count and byte total for an explicit set of accounts (bulk lookup)."""
    ids = [aid for aid in (parse_uuid(a) for a in account_ids) if aid is not None]
    if not ids:
        return []

    totals = _file_totals()
    stmt = (
        select(
            LinkedAccount.account_id,
            LinkedAccount.email,
            LinkedAccount.status,
            func.coalesce(totals.c.total_files, 0).label("file_count"),
            func.coalesce(totals.c.total_size, 0).label("total_size"),
        )
        .outerjoin(totals, totals.c.account_id == LinkedAccount.account_id)
        .where(LinkedAccount.account_id.in_(ids))
    )
    if user_id is not None:
        owner = parse_uuid(user_id)
        if owner is None:
            return []
        stmt = stmt.where(LinkedAccount.user_id == owner)
    result = await session.execute(stmt)
    return [
        FileCount(
            account_id=str(row.account_id),
            email=row.email,
            status=row.status,
            file_count=int(row.file_count),
            total_size=int(row.total_size),
        )
        for row in result.all()
    ]
