"""Unread ledger: per-user notification rows and their read flags.

``notify`` is not idempotent. Readers deduplicate by (kind, source_id):
counts and listings treat all rows for one source as a single entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, delete, func, insert, select, update

from campusboard.forum.models import UnreadKind, UnreadRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.forum.paging import Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnreadEntry:
    """One deduplicated notification as seen by its recipient."""

    kind: UnreadKind
    source_id: int
    is_read: bool
    created_at: datetime


class UnreadLedger:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def notify(self, kind: UnreadKind, user_id: int, source_id: int) -> UnreadRecord:
        record = UnreadRecord(user_id=user_id, kind=kind, source_id=source_id)
        self._session.add(record)
        await self._session.flush()
        logger.debug("Unread %s:%d for user %d", kind.value, source_id, user_id)
        return record

    async def fanout_announcement(
        self, announcement_id: int, recipients: Iterable[int]
    ) -> int:
        """Insert one announcement row per recipient in a single batch.

        The caller picks the recipients; no filtering happens here.
        """
        rows = [
            {
                "user_id": user_id,
                "kind": UnreadKind.ANNOUNCEMENT,
                "source_id": announcement_id,
                "is_read": False,
            }
            for user_id in recipients
        ]
        if not rows:
            return 0
        await self._session.execute(insert(UnreadRecord), rows)
        await self._session.flush()
        logger.info("Announcement %d fanned out to %d users", announcement_id, len(rows))
        return len(rows)

    async def mark_read(self, kind: UnreadKind, user_id: int, source_id: int) -> int:
        """Flip every unread row for (kind, source) to read. Returns rows changed."""
        stmt = (
            update(UnreadRecord)
            .where(
                UnreadRecord.user_id == user_id,
                UnreadRecord.kind == kind,
                UnreadRecord.source_id == source_id,
                UnreadRecord.is_read.is_(False),
            )
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0

    async def mark_all_read(self, user_id: int, kind: UnreadKind | None = None) -> int:
        stmt = update(UnreadRecord).where(
            UnreadRecord.user_id == user_id, UnreadRecord.is_read.is_(False)
        )
        if kind is not None:
            stmt = stmt.where(UnreadRecord.kind == kind)
        result = await self._session.execute(stmt.values(is_read=True))
        await self._session.flush()
        return result.rowcount or 0

    async def count_unread(self, user_id: int) -> dict[UnreadKind, int]:
        """Distinct unread sources per kind; every kind is present."""
        stmt = (
            select(UnreadRecord.kind, func.count(func.distinct(UnreadRecord.source_id)))
            .where(UnreadRecord.user_id == user_id, UnreadRecord.is_read.is_(False))
            .group_by(UnreadRecord.kind)
        )
        counts = dict.fromkeys(UnreadKind, 0)
        for kind, count in (await self._session.execute(stmt)).all():
            counts[kind] = int(count)
        return counts

    async def list_unread(
        self, user_id: int, kind: UnreadKind, page: Page
    ) -> list[UnreadEntry]:
        """Notifications of one kind, unread first, then newest first."""
        pending = func.sum(case((UnreadRecord.is_read.is_(False), 1), else_=0))
        latest = func.max(UnreadRecord.created_at)
        stmt = (
            select(UnreadRecord.source_id, pending.label("pending"), latest.label("latest"))
            .where(UnreadRecord.user_id == user_id, UnreadRecord.kind == kind)
            .group_by(UnreadRecord.source_id)
            .order_by(
                case((pending > 0, 0), else_=1),
                latest.desc(),
                UnreadRecord.source_id.desc(),
            )
            .limit(page.limit)
            .offset(page.offset)
        )
        result = await self._session.execute(stmt)
        return [
            UnreadEntry(kind=kind, source_id=source_id, is_read=not pending_count, created_at=at)
            for source_id, pending_count, at in result.all()
        ]

    async def purge_sources(self, kind: UnreadKind, source_ids: Iterable[int]) -> int:
        """Delete rows pointing at sources that no longer exist."""
        ids = list(source_ids)
        if not ids:
            return 0
        stmt = delete(UnreadRecord).where(
            UnreadRecord.kind == kind, UnreadRecord.source_id.in_(ids)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0
