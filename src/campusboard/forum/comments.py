"""Comment tree: top-level comments and one level of replies.

A reply to a reply is re-parented under the same top-level comment
(``thread_root``), so no chain is ever deeper than two. ``reply_to``
keeps the directly addressed comment for display.

Deleting a comment is permanent and takes its replies with it. The
recoverable path is the thread soft-delete in :mod:`campusboard.forum.threads`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, or_, select

from campusboard.core.errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from campusboard.forum.attachments import unreferenced_images
from campusboard.forum.models import (
    Comment,
    ModerationAction,
    ReactionKind,
    TargetKind,
    Thread,
    TopicEventKind,
    UnreadKind,
    _utcnow,
)
from campusboard.forum.paging import Page
from campusboard.forum.permissions import require_moderator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.forum.identity import IdentityAssigner
    from campusboard.forum.moderation import ModerationLog
    from campusboard.forum.reactions import ReactionLedger
    from campusboard.forum.reports import ReportLedger
    from campusboard.forum.topics import TopicLog
    from campusboard.forum.unread import UnreadLedger
    from campusboard.integrations.images import ImageStore

logger = logging.getLogger(__name__)

SHORT_COMMENT_LIMIT = 5
SHORT_REPLY_LIMIT = 5


@dataclass
class CommentView:
    """A comment enriched for display."""

    comment: Comment
    replies: list[CommentView] = field(default_factory=list)
    reply_count: int = 0
    is_like: bool = False
    is_dislike: bool = False
    is_owner: bool = False


class CommentTree:
    def __init__(
        self,
        session: AsyncSession,
        *,
        identity: IdentityAssigner,
        reactions: ReactionLedger,
        unread: UnreadLedger,
        reports: ReportLedger,
        topics: TopicLog | None = None,
        moderation: ModerationLog | None = None,
        images: ImageStore | None = None,
        short_comment_limit: int = SHORT_COMMENT_LIMIT,
        short_reply_limit: int = SHORT_REPLY_LIMIT,
    ) -> None:
        self._session = session
        self._identity = identity
        self._reactions = reactions
        self._unread = unread
        self._reports = reports
        self._topics = topics
        self._moderation = moderation
        self._images = images
        self._short_comment_limit = short_comment_limit
        self._short_reply_limit = short_reply_limit

    # ── Writes ───────────────────────────────────────────────────

    async def add_top_level_comment(
        self, thread_id: int, user_id: int, body: str, image_url: str | None = None
    ) -> Comment:
        """Comment directly on a thread. The owner is notified unless they wrote it."""
        thread = await self._visible_thread(thread_id)
        name = await self._identity.assign_name(thread.id, user_id)
        comment = Comment(
            thread_id=thread.id,
            author_id=user_id,
            body=body,
            image_url=image_url,
            display_name=name,
            reply_to=0,
            thread_root=0,
        )
        self._session.add(comment)
        await self._session.flush()

        await self._after_comment(thread, user_id)
        if user_id != thread.owner_id:
            await self._unread.notify(UnreadKind.COMMENT, thread.owner_id, comment.id)
        logger.debug("Comment %d in thread %d by %s", comment.id, thread.id, name)
        return comment

    async def add_reply(
        self,
        target_comment_id: int,
        user_id: int,
        body: str,
        image_url: str | None = None,
    ) -> Comment:
        """Reply to *target_comment_id*, flattening under its top-level comment.

        Notifies the thread owner, the top-level comment's author, and
        the addressed comment's author: each at most once, never the
        replier.
        """
        target = await self._visible_comment(target_comment_id)
        thread = await self._visible_thread(target.thread_id)
        if target.is_top_level:
            root = target
        else:
            root = await self._session.get(Comment, target.thread_root)
            if root is None:
                raise NotFoundError("comment", target.thread_root)

        name = await self._identity.assign_name(thread.id, user_id)
        comment = Comment(
            thread_id=thread.id,
            author_id=user_id,
            body=body,
            image_url=image_url,
            display_name=name,
            reply_to=target.id,
            reply_to_name=target.display_name,
            thread_root=root.id,
        )
        self._session.add(comment)
        await self._session.flush()

        await self._after_comment(thread, user_id)
        recipients: list[int] = []
        for uid in (thread.owner_id, root.author_id, target.author_id):
            if uid != user_id and uid not in recipients:
                recipients.append(uid)
        for uid in recipients:
            await self._unread.notify(UnreadKind.COMMENT, uid, comment.id)
        logger.debug(
            "Reply %d under comment %d (to %d) by %s", comment.id, root.id, target.id, name
        )
        return comment

    async def delete_comment(
        self, actor_id: int, comment_id: int, *, as_admin: bool = False
    ) -> list[int]:
        """Permanently remove a comment and the replies nested under it.

        Returns the ids removed. Reactions and unread rows pointing at
        them are purged; reports on them are soft-deleted. Attached
        image files are removed last, best-effort.
        """
        comment = await self._visible_comment(comment_id)
        thread = await self._session.get(Thread, comment.thread_id)
        if thread is None:
            raise NotFoundError("thread", comment.thread_id)
        if as_admin:
            await require_moderator(self._session, actor_id, thread)
        elif comment.author_id != actor_id:
            msg = f"User {actor_id} does not own comment {comment_id}"
            raise ForbiddenError(msg)

        stmt = select(Comment.id, Comment.image_url).where(
            or_(Comment.id == comment.id, Comment.thread_root == comment.id)
        )
        rows = (await self._session.execute(stmt)).all()
        ids = [row[0] for row in rows]
        image_urls = [row[1] for row in rows if row[1]]

        await self._reactions.purge(TargetKind.COMMENT, ids)
        await self._unread.purge_sources(UnreadKind.COMMENT, ids)
        await self._reports.soft_delete_for_comments(ids, _utcnow())
        await self._session.execute(delete(Comment).where(Comment.id.in_(ids)))
        await self._session.flush()

        if as_admin and self._moderation is not None:
            await self._moderation.record(
                actor_id,
                ModerationAction.COMMENT_DELETE,
                comment_id,
                f"thread={thread.id} removed={len(ids)}",
            )
        logger.info("Deleted comments %s from thread %d", ids, thread.id)
        await self._discard_images(await unreferenced_images(self._session, image_urls))
        return ids

    # ── Reads ────────────────────────────────────────────────────

    async def list_top_level(
        self, thread_id: int, page: Page, *, viewer_id: int | None = None
    ) -> list[CommentView]:
        """Top-level comments, oldest first, each with its best replies."""
        await self._visible_thread(thread_id)
        stmt = (
            select(Comment)
            .where(
                Comment.thread_id == thread_id,
                Comment.thread_root == 0,
                Comment.deleted_at.is_(None),
            )
            .order_by(Comment.created_at, Comment.id)
            .limit(page.limit)
            .offset(page.offset)
        )
        tops = list((await self._session.execute(stmt)).scalars().all())
        return await self._enrich(tops, viewer_id)

    async def list_short(
        self, thread_id: int, *, viewer_id: int | None = None
    ) -> list[CommentView]:
        """First few top-level comments, as shown on the thread page."""
        return await self.list_top_level(
            thread_id, Page(1, self._short_comment_limit), viewer_id=viewer_id
        )

    async def list_replies(
        self, root_comment_id: int, page: Page, *, viewer_id: int | None = None
    ) -> list[CommentView]:
        """Every reply under a top-level comment, oldest first."""
        root = await self._visible_comment(root_comment_id)
        if not root.is_top_level:
            msg = f"Comment {root_comment_id} is a reply, not a top-level comment"
            raise ValidationError(msg)
        stmt = (
            select(Comment)
            .where(Comment.thread_root == root.id, Comment.deleted_at.is_(None))
            .order_by(Comment.created_at, Comment.id)
            .limit(page.limit)
            .offset(page.offset)
        )
        replies = list((await self._session.execute(stmt)).scalars().all())
        flags = await self._viewer_flags(replies, viewer_id)
        return [self._view(c, flags, viewer_id) for c in replies]

    async def get_comment_view(
        self, comment_id: int, *, viewer_id: int | None = None
    ) -> CommentView:
        comment = await self._visible_comment(comment_id)
        if comment.is_top_level:
            return (await self._enrich([comment], viewer_id))[0]
        flags = await self._viewer_flags([comment], viewer_id)
        return self._view(comment, flags, viewer_id)

    async def get_comment(self, comment_id: int) -> Comment:
        return await self._visible_comment(comment_id)

    async def count_in_thread(self, thread_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(Comment)
            .where(Comment.thread_id == thread_id, Comment.deleted_at.is_(None))
        )
        return int(await self._session.scalar(stmt) or 0)

    # ── Internals ────────────────────────────────────────────────

    async def _visible_thread(self, thread_id: int) -> Thread:
        thread = await self._session.get(Thread, thread_id)
        if thread is None or thread.is_deleted:
            raise NotFoundError("thread", thread_id)
        return thread

    async def _visible_comment(self, comment_id: int) -> Comment:
        comment = await self._session.get(Comment, comment_id)
        if comment is None or comment.deleted_at is not None:
            raise NotFoundError("comment", comment_id)
        return comment

    async def _after_comment(self, thread: Thread, user_id: int) -> None:
        if self._topics is not None:
            await self._topics.log(thread.topic_id, TopicEventKind.COMMENT_ADDED)
        if user_id != thread.owner_id:
            thread.updated_at = _utcnow()
            await self._session.flush()

    async def _enrich(
        self, tops: Sequence[Comment], viewer_id: int | None
    ) -> list[CommentView]:
        if not tops:
            return []
        ids = [c.id for c in tops]

        count_stmt = (
            select(Comment.thread_root, func.count())
            .where(Comment.thread_root.in_(ids), Comment.deleted_at.is_(None))
            .group_by(Comment.thread_root)
        )
        counts = dict((await self._session.execute(count_stmt)).all())

        rank = (
            func.row_number()
            .over(
                partition_by=Comment.thread_root,
                order_by=(
                    Comment.like_count.desc(),
                    Comment.created_at.desc(),
                    Comment.id.desc(),
                ),
            )
            .label("rank")
        )
        ranked = (
            select(Comment.id, rank)
            .where(Comment.thread_root.in_(ids), Comment.deleted_at.is_(None))
            .subquery()
        )
        reply_stmt = (
            select(Comment)
            .join(ranked, ranked.c.id == Comment.id)
            .where(ranked.c.rank <= self._short_reply_limit)
            .order_by(Comment.thread_root, ranked.c.rank)
        )
        replies = list((await self._session.execute(reply_stmt)).scalars().all())

        flags = await self._viewer_flags([*tops, *replies], viewer_id)
        by_root: dict[int, list[CommentView]] = {cid: [] for cid in ids}
        for reply in replies:
            by_root[reply.thread_root].append(self._view(reply, flags, viewer_id))

        views = []
        for top in tops:
            view = self._view(top, flags, viewer_id)
            view.replies = by_root[top.id]
            view.reply_count = int(counts.get(top.id, 0))
            views.append(view)
        return views

    async def _viewer_flags(
        self, comments: Sequence[Comment], viewer_id: int | None
    ) -> dict[int, set[ReactionKind]]:
        if viewer_id is None or not comments:
            return {}
        return await self._reactions.active_kinds(
            viewer_id, TargetKind.COMMENT, [c.id for c in comments]
        )

    @staticmethod
    def _view(
        comment: Comment, flags: dict[int, set[ReactionKind]], viewer_id: int | None
    ) -> CommentView:
        kinds = flags.get(comment.id, set())
        return CommentView(
            comment=comment,
            is_like=ReactionKind.LIKE in kinds,
            is_dislike=ReactionKind.DISLIKE in kinds,
            is_owner=viewer_id is not None and comment.author_id == viewer_id,
        )

    async def _discard_images(self, urls: list[str]) -> None:
        if not urls or self._images is None:
            return
        try:
            await self._images.delete(urls)
        except StorageError:
            logger.exception("Could not remove %d comment images", len(urls))
