"""Reaction ledger: likes, dislikes, and favorites on threads and comments.

Every activation writes a ``reactions`` row and bumps the target's
counter; every deactivation deletes the row and decrements it. Like and
dislike are one *opinion* per (user, target): every change to it, from
``activate``, ``deactivate`` or ``set_opinion``, goes through a single
transition so at most one of the two is ever active. Favorites are
independent.

A uniqueness constraint on (user, target, kind) rejects the losing side
of two concurrent activations; the resulting IntegrityError surfaces as
:class:`AlreadyActiveError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from campusboard.core.errors import (
    AlreadyActiveError,
    NotActiveError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from campusboard.forum.models import (
    Comment,
    Reaction,
    ReactionKind,
    TargetKind,
    Thread,
    TopicEventKind,
    _utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from campusboard.forum.topics import TopicLog

logger = logging.getLogger(__name__)

_MODELS: dict[TargetKind, type[Thread] | type[Comment]] = {
    TargetKind.THREAD: Thread,
    TargetKind.COMMENT: Comment,
}

_COUNTERS: dict[tuple[TargetKind, ReactionKind], InstrumentedAttribute[int]] = {
    (TargetKind.THREAD, ReactionKind.LIKE): Thread.like_count,
    (TargetKind.THREAD, ReactionKind.DISLIKE): Thread.dislike_count,
    (TargetKind.THREAD, ReactionKind.FAVORITE): Thread.favorite_count,
    (TargetKind.COMMENT, ReactionKind.LIKE): Comment.like_count,
    (TargetKind.COMMENT, ReactionKind.DISLIKE): Comment.dislike_count,
}

_OPINIONS = (ReactionKind.LIKE, ReactionKind.DISLIKE)

_TOPIC_EVENTS: dict[tuple[ReactionKind, bool], TopicEventKind] = {
    (ReactionKind.LIKE, True): TopicEventKind.LIKED,
    (ReactionKind.LIKE, False): TopicEventKind.UNLIKED,
    (ReactionKind.DISLIKE, True): TopicEventKind.DISLIKED,
    (ReactionKind.DISLIKE, False): TopicEventKind.UNDISLIKED,
    (ReactionKind.FAVORITE, True): TopicEventKind.FAVORITED,
    (ReactionKind.FAVORITE, False): TopicEventKind.UNFAVORITED,
}


def _counter(target_kind: TargetKind, kind: ReactionKind) -> InstrumentedAttribute[int]:
    try:
        return _COUNTERS[(target_kind, kind)]
    except KeyError:
        msg = f"{kind.value} is not supported on {target_kind.value}s"
        raise ValidationError(msg) from None


class ReactionLedger:
    """Per-user reaction state and the counters it drives."""

    def __init__(self, session: AsyncSession, *, topics: TopicLog | None = None) -> None:
        self._session = session
        self._topics = topics

    # ── Public contract ──────────────────────────────────────────

    async def activate(
        self,
        kind: ReactionKind,
        user_id: int,
        target_kind: TargetKind,
        target_id: int,
    ) -> int:
        """Activate *kind* and return the target's new counter for it.

        Raises AlreadyActiveError if the record exists. Activating like
        deactivates an existing dislike (and vice versa).
        """
        counter = _counter(target_kind, kind)
        target = await self._load_target(target_kind, target_id)

        if kind is ReactionKind.FAVORITE:
            if await self._find(user_id, target_kind, target_id, kind) is not None:
                raise AlreadyActiveError(kind.value, user_id, target_kind.value, target_id)
            await self._insert(user_id, target_kind, target_id, kind)
            await self._adjust(target_kind, target_id, kind, +1)
        else:
            current = await self.opinion(user_id, target_kind, target_id)
            if current is kind:
                raise AlreadyActiveError(kind.value, user_id, target_kind.value, target_id)
            await self._apply_opinion(user_id, target_kind, target_id, current, kind)

        await self._after_toggle(target, user_id, kind, activated=True)
        return await self._read_counter(target_kind, target_id, counter)

    async def deactivate(
        self,
        kind: ReactionKind,
        user_id: int,
        target_kind: TargetKind,
        target_id: int,
    ) -> int:
        """Deactivate *kind* and return the target's new counter for it.

        Raises NotActiveError if there is no record to remove.
        """
        counter = _counter(target_kind, kind)
        target = await self._load_target(target_kind, target_id)

        if kind is ReactionKind.FAVORITE:
            if await self._find(user_id, target_kind, target_id, kind) is None:
                raise NotActiveError(kind.value, user_id, target_kind.value, target_id)
            await self._remove(user_id, target_kind, target_id, kind)
            await self._adjust(target_kind, target_id, kind, -1)
        else:
            current = await self.opinion(user_id, target_kind, target_id)
            if current is not kind:
                raise NotActiveError(kind.value, user_id, target_kind.value, target_id)
            await self._apply_opinion(user_id, target_kind, target_id, current, None)

        await self._after_toggle(target, user_id, kind, activated=False)
        return await self._read_counter(target_kind, target_id, counter)

    async def set_opinion(
        self,
        user_id: int,
        target_kind: TargetKind,
        target_id: int,
        state: ReactionKind | None,
    ) -> ReactionKind | None:
        """Move the user's like/dislike opinion to *state* (None clears it).

        Idempotent: setting the current state is a no-op. Returns the
        previous opinion.
        """
        if state is ReactionKind.FAVORITE:
            msg = "favorite is not an opinion; use activate/deactivate"
            raise ValidationError(msg)
        if state is not None:
            _counter(target_kind, state)
        await self._load_target(target_kind, target_id)
        current = await self.opinion(user_id, target_kind, target_id)
        if current is not state:
            await self._apply_opinion(user_id, target_kind, target_id, current, state)
        return current

    async def opinion(
        self, user_id: int, target_kind: TargetKind, target_id: int
    ) -> ReactionKind | None:
        """The user's active like/dislike on the target, if any."""
        stmt = select(Reaction.kind).where(
            Reaction.user_id == user_id,
            Reaction.target_kind == target_kind,
            Reaction.target_id == target_id,
            Reaction.kind.in_(_OPINIONS),
        )
        kinds = set((await self._session.execute(stmt)).scalars().all())
        if len(kinds) > 1:
            msg = f"User {user_id} holds both like and dislike on {target_kind.value} {target_id}"
            raise StorageError(msg)
        return next(iter(kinds), None)

    async def is_active(
        self,
        kind: ReactionKind,
        user_id: int,
        target_kind: TargetKind,
        target_id: int,
    ) -> bool:
        return await self._find(user_id, target_kind, target_id, kind) is not None

    async def active_kinds(
        self, user_id: int, target_kind: TargetKind, target_ids: Iterable[int]
    ) -> dict[int, set[ReactionKind]]:
        """Bulk lookup of the viewer's active reactions on many targets."""
        ids = list(target_ids)
        found: dict[int, set[ReactionKind]] = {tid: set() for tid in ids}
        if not ids:
            return found
        stmt = select(Reaction.target_id, Reaction.kind).where(
            Reaction.user_id == user_id,
            Reaction.target_kind == target_kind,
            Reaction.target_id.in_(ids),
        )
        for target_id, kind in (await self._session.execute(stmt)).all():
            found[target_id].add(kind)
        return found

    async def favorited_thread_ids(self, user_id: int) -> list[int]:
        stmt = (
            select(Reaction.target_id)
            .where(
                Reaction.user_id == user_id,
                Reaction.target_kind == TargetKind.THREAD,
                Reaction.kind == ReactionKind.FAVORITE,
            )
            .order_by(Reaction.id.desc())
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def purge(self, target_kind: TargetKind, target_ids: Iterable[int]) -> int:
        """Delete every reaction on the given targets (weak-reference cleanup)."""
        ids = list(target_ids)
        if not ids:
            return 0
        stmt = delete(Reaction).where(
            Reaction.target_kind == target_kind, Reaction.target_id.in_(ids)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0

    # ── Internals ────────────────────────────────────────────────

    async def _apply_opinion(
        self,
        user_id: int,
        target_kind: TargetKind,
        target_id: int,
        current: ReactionKind | None,
        new: ReactionKind | None,
    ) -> None:
        """The one place a like/dislike opinion changes."""
        logger.debug(
            "Opinion of user %d on %s %d: %s -> %s",
            user_id,
            target_kind.value,
            target_id,
            current.value if current else None,
            new.value if new else None,
        )
        if current is not None:
            await self._remove(user_id, target_kind, target_id, current)
            await self._adjust(target_kind, target_id, current, -1)
        if new is not None:
            await self._insert(user_id, target_kind, target_id, new)
            await self._adjust(target_kind, target_id, new, +1)

    async def _load_target(self, target_kind: TargetKind, target_id: int) -> Thread | Comment:
        model = _MODELS[target_kind]
        target = await self._session.get(model, target_id)
        if target is None or target.deleted_at is not None:
            raise NotFoundError(target_kind.value, target_id)
        return target

    async def _find(
        self, user_id: int, target_kind: TargetKind, target_id: int, kind: ReactionKind
    ) -> Reaction | None:
        stmt = select(Reaction).where(
            Reaction.user_id == user_id,
            Reaction.target_kind == target_kind,
            Reaction.target_id == target_id,
            Reaction.kind == kind,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _insert(
        self, user_id: int, target_kind: TargetKind, target_id: int, kind: ReactionKind
    ) -> None:
        self._session.add(
            Reaction(user_id=user_id, target_kind=target_kind, target_id=target_id, kind=kind)
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise AlreadyActiveError(kind.value, user_id, target_kind.value, target_id) from e

    async def _remove(
        self, user_id: int, target_kind: TargetKind, target_id: int, kind: ReactionKind
    ) -> None:
        stmt = delete(Reaction).where(
            Reaction.user_id == user_id,
            Reaction.target_kind == target_kind,
            Reaction.target_id == target_id,
            Reaction.kind == kind,
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise NotActiveError(kind.value, user_id, target_kind.value, target_id)

    async def _adjust(
        self, target_kind: TargetKind, target_id: int, kind: ReactionKind, delta: int
    ) -> None:
        model = _MODELS[target_kind]
        col = _counter(target_kind, kind)
        stmt = update(model).where(model.id == target_id)
        if delta < 0:
            stmt = stmt.where(col >= -delta)
        result = await self._session.execute(stmt.values({col: col + delta}))
        if result.rowcount != 1:
            msg = (
                f"{col.key} on {target_kind.value} {target_id} would go negative"
                if delta < 0
                else f"{target_kind.value} {target_id} vanished during update"
            )
            raise StorageError(msg)

    async def _read_counter(
        self, target_kind: TargetKind, target_id: int, col: InstrumentedAttribute[int]
    ) -> int:
        model = _MODELS[target_kind]
        stmt = select(col).where(model.id == target_id)
        return int((await self._session.execute(stmt)).scalar_one())

    async def _after_toggle(
        self, target: Thread | Comment, user_id: int, kind: ReactionKind, *, activated: bool
    ) -> None:
        """Thread engagement by a non-owner refreshes activity and topic stats."""
        if not isinstance(target, Thread) or target.owner_id == user_id:
            return
        if activated:
            target.updated_at = _utcnow()
        if self._topics is not None:
            await self._topics.log(target.topic_id, _TOPIC_EVENTS[(kind, activated)])
        await self._session.flush()
