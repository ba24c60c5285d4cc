"""Anonymized per-thread display names.

The thread owner is always shown as the owner sentinel. Every other
user gets ``<prefix><n>`` the first time they comment, where ``n`` is
the number of non-owner users who claimed a name in that thread before
them. Claims live in ``thread_aliases``; its unique constraints on
(thread, user) and (thread, name) turn two simultaneous first comments
into a conflict that is retried with a freshly counted ordinal instead
of a duplicated name.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from campusboard.core.errors import AliasConflictError, NotFoundError
from campusboard.core.retry import RetryConfig, retry_with_backoff
from campusboard.forum.models import Thread, ThreadAlias

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OWNER_NAME = "Owner"
ALIAS_PREFIX = "Anon"


class IdentityAssigner:
    """Assigns stable, per-thread unique display names."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        owner_name: str = OWNER_NAME,
        prefix: str = ALIAS_PREFIX,
        retry: RetryConfig | None = None,
    ) -> None:
        self._session = session
        self._owner_name = owner_name
        self._prefix = prefix
        self._retry = retry or RetryConfig()

    async def assign_name(self, thread_id: int, user_id: int) -> str:
        """Return the display name *user_id* uses in *thread_id*.

        Raises NotFoundError if the thread does not exist. Database
        errors propagate; the caller aborts comment creation.
        """
        thread = await self._session.get(Thread, thread_id)
        if thread is None:
            raise NotFoundError("thread", thread_id)
        if thread.owner_id == user_id:
            return self._owner_name

        existing = await self._lookup(thread_id, user_id)
        if existing is not None:
            return existing

        def _log_retry(attempt: int, delay: float, error: Exception) -> None:
            logger.info("Alias claim retry %d in thread %d: %s", attempt, thread_id, error)

        return await retry_with_backoff(
            lambda: self._claim(thread_id, user_id), self._retry, on_retry=_log_retry
        )

    async def _lookup(self, thread_id: int, user_id: int) -> str | None:
        stmt = select(ThreadAlias.name).where(
            ThreadAlias.thread_id == thread_id, ThreadAlias.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _count_claimed(self, thread_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(ThreadAlias)
            .where(ThreadAlias.thread_id == thread_id)
        )
        return int(await self._session.scalar(stmt) or 0)

    async def _claim(self, thread_id: int, user_id: int) -> str:
        ordinal = await self._count_claimed(thread_id)
        name = f"{self._prefix}{ordinal}"
        try:
            async with self._session.begin_nested():
                self._session.add(
                    ThreadAlias(thread_id=thread_id, user_id=user_id, name=name)
                )
        except IntegrityError as e:
            # Either the name was taken, or this same user won a parallel claim.
            existing = await self._lookup(thread_id, user_id)
            if existing is not None:
                return existing
            raise AliasConflictError(thread_id, name) from e
        return name

    async def names_in_thread(self, thread_id: int) -> dict[int, str]:
        """Map of user id -> claimed display name (owner excluded)."""
        stmt = select(ThreadAlias.user_id, ThreadAlias.name).where(
            ThreadAlias.thread_id == thread_id
        )
        result = await self._session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}
