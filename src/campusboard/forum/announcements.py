"""Campus-wide announcements and their fan-out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from campusboard.core.errors import NotFoundError
from campusboard.forum.models import Announcement, UnreadKind, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.forum.paging import Page
    from campusboard.forum.unread import UnreadLedger
    from campusboard.integrations.notifier import Notifier

logger = logging.getLogger(__name__)


class AnnouncementBoard:
    def __init__(
        self,
        session: AsyncSession,
        *,
        unread: UnreadLedger,
        notifier: Notifier | None = None,
    ) -> None:
        self._session = session
        self._unread = unread
        self._notifier = notifier

    async def publish(self, sender: str, title: str, body: str) -> tuple[Announcement, int]:
        """Persist an announcement and notify every active non-staff user.

        Returns the announcement and the number of recipients. Outbound
        delivery is best-effort: its failure is logged and the unread
        rows stay.
        """
        announcement = Announcement(sender=sender, title=title, body=body)
        self._session.add(announcement)
        await self._session.flush()

        stmt = (
            select(User.id, User.number)
            .where(
                User.is_active.is_(True),
                User.is_super.is_(False),
                User.is_service_admin.is_(False),
                User.is_community_admin.is_(False),
            )
            .order_by(User.id)
        )
        recipients = (await self._session.execute(stmt)).all()
        count = await self._unread.fanout_announcement(
            announcement.id, [row[0] for row in recipients]
        )

        if self._notifier is not None:
            numbers = [row[1] for row in recipients if row[1]]
            try:
                await self._notifier.notify_announcement(sender, title, numbers)
            except Exception as exc:
                logger.warning("Announcement %d delivery failed: %s", announcement.id, exc)
        return announcement, count

    async def list_announcements(self, page: Page) -> tuple[list[Announcement], int]:
        total = int(
            await self._session.scalar(select(func.count()).select_from(Announcement)) or 0
        )
        stmt = (
            select(Announcement)
            .order_by(Announcement.created_at.desc(), Announcement.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        return list((await self._session.execute(stmt)).scalars().all()), total

    async def read(self, announcement_id: int, user_id: int) -> Announcement:
        """Open an announcement, acknowledging its unread entry."""
        announcement = await self._session.get(Announcement, announcement_id)
        if announcement is None:
            raise NotFoundError("announcement", announcement_id)
        await self._unread.mark_read(UnreadKind.ANNOUNCEMENT, user_id, announcement_id)
        return announcement
