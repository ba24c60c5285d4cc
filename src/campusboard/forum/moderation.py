"""Audit trail for administrative actions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from campusboard.forum.models import ModerationAction, ModerationEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.forum.paging import Page

logger = logging.getLogger(__name__)


class ModerationLog:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        actor_id: int,
        action: ModerationAction,
        target_id: int,
        detail: str = "",
    ) -> ModerationEntry:
        entry = ModerationEntry(
            actor_id=actor_id, action=action, target_id=target_id, detail=detail
        )
        self._session.add(entry)
        await self._session.flush()
        logger.info(
            "Moderation %s by user %d on %d %s", action.value, actor_id, target_id, detail
        )
        return entry

    async def list_entries(
        self, page: Page, *, actor_id: int | None = None
    ) -> list[ModerationEntry]:
        stmt = select(ModerationEntry).order_by(ModerationEntry.id.desc())
        if actor_id is not None:
            stmt = stmt.where(ModerationEntry.actor_id == actor_id)
        stmt = stmt.limit(page.limit).offset(page.offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
