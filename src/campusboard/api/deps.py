"""Per-request access to the forum components."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from campusboard.forum.service import Forum

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import Request


@asynccontextmanager
async def open_forum(request: Request) -> AsyncIterator[Forum]:
    """Yield a :class:`Forum` on a fresh session.

    Handlers commit explicitly; leaving the block without a commit
    (including by exception) rolls the whole operation back.
    """
    state = request.app.state
    config = state.config
    async with state.db_factory() as session:
        yield Forum(
            session,
            config.general,
            images=getattr(state, "images", None),
            relevance=getattr(state, "relevance", None),
            notifier=getattr(state, "notifier", None),
            max_images=config.images.max_per_thread,
        )
