"""User reports against threads and comments."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update

from campusboard.core.errors import NotFoundError
from campusboard.forum.models import Comment, Report, TargetKind, Thread, _utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ReportLedger:
    """Report rows, soft-deleted and recovered in lockstep with their target."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_report(
        self, reporter_id: int, target_kind: TargetKind, target_id: int, reason: str
    ) -> Report:
        thread_id = await self._thread_of(target_kind, target_id)
        report = Report(
            reporter_id=reporter_id,
            target_kind=target_kind,
            target_id=target_id,
            thread_id=thread_id,
            reason=reason,
        )
        self._session.add(report)
        await self._session.flush()
        logger.info(
            "Report %d by user %d on %s %d", report.id, reporter_id, target_kind.value, target_id
        )
        return report

    async def list_reports(self, target_kind: TargetKind | None = None) -> list[Report]:
        """All reports, newest first. Soft-deleted rows are included."""
        stmt = select(Report).order_by(Report.created_at.desc(), Report.id.desc())
        if target_kind is not None:
            stmt = stmt.where(Report.target_kind == target_kind)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def solve_reports(self, target_kind: TargetKind, target_id: int) -> int:
        stmt = (
            update(Report)
            .where(
                Report.target_kind == target_kind,
                Report.target_id == target_id,
                Report.solved.is_(False),
            )
            .values(solved=True)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0

    async def delete_report(self, report_id: int) -> Report:
        report = await self._session.get(Report, report_id)
        if report is None or report.is_deleted:
            raise NotFoundError("report", report_id)
        report.deleted_at = _utcnow()
        await self._session.flush()
        return report

    # ── Cascade helpers ──────────────────────────────────────────
    #
    # Rows are loaded and stamped through the ORM so report objects
    # already held by the session see the change immediately.

    async def soft_delete_for_thread(self, thread_id: int, stamp: datetime) -> int:
        return await self._stamp(
            select(Report).where(Report.thread_id == thread_id, Report.deleted_at.is_(None)),
            stamp,
        )

    async def recover_for_thread(self, thread_id: int, stamp: datetime) -> int:
        """Restore only the reports hidden by the deletion carrying *stamp*."""
        return await self._stamp(
            select(Report).where(Report.thread_id == thread_id, Report.deleted_at == stamp),
            None,
        )

    async def soft_delete_for_comments(self, comment_ids: Iterable[int], stamp: datetime) -> int:
        ids = list(comment_ids)
        if not ids:
            return 0
        return await self._stamp(
            select(Report).where(
                Report.target_kind == TargetKind.COMMENT,
                Report.target_id.in_(ids),
                Report.deleted_at.is_(None),
            ),
            stamp,
        )

    async def purge_for_thread(self, thread_id: int) -> int:
        result = await self._session.execute(
            delete(Report)
            .where(Report.thread_id == thread_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def _stamp(self, stmt: Select[tuple[Report]], stamp: datetime | None) -> int:
        reports = (await self._session.execute(stmt)).scalars().all()
        for report in reports:
            report.deleted_at = stamp
        await self._session.flush()
        return len(reports)

    async def _thread_of(self, target_kind: TargetKind, target_id: int) -> int:
        if target_kind is TargetKind.THREAD:
            thread = await self._session.get(Thread, target_id)
            if thread is None or thread.is_deleted:
                raise NotFoundError("thread", target_id)
            return thread.id
        comment = await self._session.get(Comment, target_id)
        if comment is None or comment.deleted_at is not None:
            raise NotFoundError("comment", target_id)
        return comment.thread_id
