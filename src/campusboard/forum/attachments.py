"""Image URLs shared between rows.

Comment image URLs come from the client, so one file can be attached to
several comments, threads, or staff replies. A file is only removed once
no surviving row points at it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, cast, or_, select

from campusboard.forum.models import Comment, StaffReply, ThreadImage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


async def unreferenced_images(session: AsyncSession, urls: Iterable[str]) -> list[str]:
    """The subset of *urls* no stored comment, thread image or staff reply uses.

    Call after the owning rows have been deleted and flushed.
    """
    candidates = list(dict.fromkeys(u for u in urls if u))
    if not candidates:
        return []

    used: set[str] = set()
    used.update(
        await session.scalars(select(Comment.image_url).where(Comment.image_url.in_(candidates)))
    )
    used.update(
        await session.scalars(select(ThreadImage.url).where(ThreadImage.url.in_(candidates)))
    )
    # image_urls is a JSON list; narrow with a text match, then check exactly.
    as_text = cast(StaffReply.image_urls, String)
    stmt = select(StaffReply.image_urls).where(or_(*(as_text.contains(u) for u in candidates)))
    for reply_urls in await session.scalars(stmt):
        used.update(reply_urls or [])

    return [u for u in candidates if u not in used]
