"""Administrative rights checks.

Super admins may moderate anything. Campus-service threads are
moderated by service admins who belong to the thread's department;
every other category by community admins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from campusboard.core.errors import ForbiddenError
from campusboard.forum.models import DepartmentMember, Thread, ThreadCategory, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def load_user(session: AsyncSession, user_id: int) -> User | None:
    """Return the local user row, or None for users with no stored rights."""
    return await session.get(User, user_id)


async def is_department_member(
    session: AsyncSession, user_id: int, department_id: int
) -> bool:
    stmt = select(DepartmentMember).where(
        DepartmentMember.user_id == user_id,
        DepartmentMember.department_id == department_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none() is not None


async def can_moderate(session: AsyncSession, user_id: int, thread: Thread) -> bool:
    """True if *user_id* holds an admin right covering *thread*."""
    user = await load_user(session, user_id)
    if user is None or not user.is_active:
        return False
    if user.is_super:
        return True
    if thread.category is ThreadCategory.CAMPUS_SERVICE:
        if not user.is_service_admin or thread.department_id is None:
            return False
        return await is_department_member(session, user_id, thread.department_id)
    return user.is_community_admin


async def require_moderator(session: AsyncSession, user_id: int, thread: Thread) -> None:
    """Raise ForbiddenError unless *user_id* may moderate *thread*."""
    if not await can_moderate(session, user_id, thread):
        msg = f"User {user_id} has no admin right over thread {thread.id}"
        raise ForbiddenError(msg)


async def require_super(session: AsyncSession, user_id: int) -> User:
    """Raise ForbiddenError unless *user_id* is an active super admin."""
    user = await load_user(session, user_id)
    if user is None or not user.is_active or not user.is_super:
        msg = f"User {user_id} is not a super admin"
        raise ForbiddenError(msg)
    return user


async def require_staff(session: AsyncSession, user_id: int) -> User:
    """Raise ForbiddenError unless *user_id* holds any administrative right."""
    user = await load_user(session, user_id)
    if user is None or not user.is_active or not user.is_staff:
        msg = f"User {user_id} is not staff"
        raise ForbiddenError(msg)
    return user
