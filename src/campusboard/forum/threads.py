"""Thread store: thread records, listings, and the delete/recover cascade.

Soft delete stamps the thread and everything it owns (reports, staff
replies, comments) with one shared ``deleted_at`` value; recovery clears
exactly the rows carrying that stamp, so rows hidden earlier for other
reasons stay hidden. Both run inside the caller's transaction: nothing
here commits.

Permanent purge is separate and is the only path that removes image
files or the weakly referenced reaction and unread rows.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, delete, func, select

from campusboard.core.errors import (
    ConfigError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from campusboard.forum.attachments import unreferenced_images
from campusboard.forum.models import (
    Campus,
    Comment,
    Department,
    ModerationAction,
    Reaction,
    ReactionKind,
    ResolutionStatus,
    StaffReply,
    TargetKind,
    Thread,
    ThreadAlias,
    ThreadCategory,
    ThreadImage,
    Topic,
    TopicEventKind,
    UnreadKind,
    VisitLog,
    _utcnow,
)
from campusboard.forum.permissions import require_moderator
from campusboard.integrations.relevance import KeywordRelevance

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime, timedelta

    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.forum.moderation import ModerationLog
    from campusboard.forum.paging import Page
    from campusboard.forum.reactions import ReactionLedger
    from campusboard.forum.reports import ReportLedger
    from campusboard.forum.topics import TopicLog
    from campusboard.forum.unread import UnreadLedger
    from campusboard.integrations.images import ImageStore
    from campusboard.integrations.relevance import RelevanceEngine

logger = logging.getLogger(__name__)

MAX_IMAGES = 3
MIN_RATING = 1
MAX_RATING = 10


class ValueMode(enum.Enum):
    """How editorial value affects a listing."""

    DEFAULT = "default"  # order by value first
    ONLY = "only"  # boosted threads only
    NONE = "none"  # ignore value


class SortMode(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class ThreadFilter:
    category: ThreadCategory | None = None
    campus: Campus | None = None
    department_id: int | None = None
    resolution: ResolutionStatus | None = None
    search: str = ""
    topic_id: int | None = None
    value_mode: ValueMode = ValueMode.DEFAULT
    sort: SortMode = SortMode.CREATED
    include_deleted: bool = False


@dataclass
class ThreadView:
    """A thread with its display extras and the viewer's relation to it."""

    thread: Thread
    image_urls: list[str]
    comment_count: int = 0
    department_name: str | None = None
    topic_name: str | None = None
    is_like: bool = False
    is_dislike: bool = False
    is_favorite: bool = False
    is_owner: bool = False

    @property
    def is_deleted(self) -> bool:
        return self.thread.is_deleted


class ThreadStore:
    def __init__(
        self,
        session: AsyncSession,
        *,
        reactions: ReactionLedger,
        unread: UnreadLedger,
        reports: ReportLedger,
        moderation: ModerationLog,
        topics: TopicLog | None = None,
        images: ImageStore | None = None,
        relevance: RelevanceEngine | None = None,
        max_images: int = MAX_IMAGES,
    ) -> None:
        self._session = session
        self._reactions = reactions
        self._unread = unread
        self._reports = reports
        self._moderation = moderation
        self._topics = topics
        self._images = images
        self._relevance = relevance or KeywordRelevance()
        self._max_images = max_images

    # ── Create ───────────────────────────────────────────────────

    async def create_thread(
        self,
        owner_id: int,
        category: ThreadCategory,
        campus: Campus,
        title: str,
        body: str,
        images: Sequence[bytes] = (),
        *,
        topic_id: int | None = None,
        department_id: int | None = None,
    ) -> Thread:
        """Create a thread with its images as one unit.

        Campus-service threads need a department and take no topic; other
        categories take an optional topic and no department. Images are
        uploaded first and removed again if anything later fails.
        """
        await self._check_routing(category, topic_id, department_id)
        if len(images) > self._max_images:
            msg = f"At most {self._max_images} images per thread, got {len(images)}"
            raise ValidationError(msg)
        store = self._images
        if images and store is None:
            msg = "No image store configured"
            raise ConfigError(msg)

        uploaded: list[str] = []
        try:
            if store is not None:
                for data in images:
                    uploaded.append(await store.save(data))
            thread = Thread(
                owner_id=owner_id,
                category=category,
                campus=campus,
                title=title,
                body=body,
                topic_id=topic_id,
                department_id=department_id,
            )
            thread.images = [
                ThreadImage(url=url, position=pos) for pos, url in enumerate(uploaded)
            ]
            self._session.add(thread)
            await self._session.flush()
            if self._topics is not None:
                await self._topics.log(thread.topic_id, TopicEventKind.THREAD_ADDED)
        except Exception:
            await self._discard_images(uploaded)
            raise

        logger.info(
            "Thread %d created by user %d (%s, %d images)",
            thread.id,
            owner_id,
            category.value,
            len(uploaded),
        )
        return thread

    # ── Read ─────────────────────────────────────────────────────

    async def get_thread(self, thread_id: int, *, include_deleted: bool = False) -> Thread:
        thread = await self._session.get(Thread, thread_id)
        if thread is None or (thread.is_deleted and not include_deleted):
            raise NotFoundError("thread", thread_id)
        return thread

    async def get_thread_view(
        self,
        thread_id: int,
        *,
        viewer_id: int | None = None,
        record_visit: bool = False,
        include_deleted: bool = False,
    ) -> ThreadView:
        """One thread with images, counts, names, and viewer flags.

        With *record_visit*, the viewer's visit history gains an entry.
        """
        thread = await self.get_thread(thread_id, include_deleted=include_deleted)
        if record_visit and viewer_id is not None:
            self._session.add(VisitLog(user_id=viewer_id, thread_id=thread.id))
            await self._session.flush()
        return (await self._views([thread], viewer_id))[0]

    async def list_threads(
        self, filt: ThreadFilter, page: Page, *, viewer_id: int | None = None
    ) -> tuple[list[ThreadView], int]:
        """Filtered page of threads plus the total match count.

        Order: relevance when searching, else update time when requested,
        else editorial value unless ignored; creation time breaks ties.
        """
        conds: list[ColumnElement[bool]] = []
        if not filt.include_deleted:
            conds.append(Thread.deleted_at.is_(None))
        if filt.category is not None:
            conds.append(Thread.category == filt.category)
        if filt.campus is not None:
            conds.append(Thread.campus == filt.campus)
        if filt.department_id is not None:
            conds.append(Thread.department_id == filt.department_id)
        if filt.resolution is not None:
            conds.append(Thread.resolution == filt.resolution)
        if filt.topic_id is not None:
            conds.append(Thread.topic_id == filt.topic_id)
        if filt.value_mode is ValueMode.ONLY:
            conds.append(Thread.value != 0)

        score = None
        if filt.search.strip():
            predicate, score = self._relevance.rank(filt.search)
            conds.append(predicate)

        total_stmt = select(func.count()).select_from(Thread).where(*conds)
        total = int(await self._session.scalar(total_stmt) or 0)

        order = []
        if score is not None:
            order.append(score.desc())
        elif filt.sort is SortMode.UPDATED:
            order.append(Thread.updated_at.desc())
        elif filt.value_mode is not ValueMode.NONE:
            order.append(Thread.value.desc())
        order.extend([Thread.created_at.desc(), Thread.id.desc()])

        stmt = (
            select(Thread)
            .where(*conds)
            .order_by(*order)
            .limit(page.limit)
            .offset(page.offset)
        )
        threads = list((await self._session.execute(stmt)).scalars().all())
        return await self._views(threads, viewer_id), total

    async def list_user_threads(
        self, owner_id: int, page: Page, *, viewer_id: int | None = None
    ) -> list[ThreadView]:
        stmt = (
            select(Thread)
            .where(Thread.owner_id == owner_id, Thread.deleted_at.is_(None))
            .order_by(Thread.created_at.desc(), Thread.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        threads = list((await self._session.execute(stmt)).scalars().all())
        return await self._views(threads, viewer_id)

    async def list_favorite_threads(self, user_id: int, page: Page) -> list[ThreadView]:
        """Threads the user favorited, most recently favorited first."""
        stmt = (
            select(Thread)
            .join(
                Reaction,
                (Reaction.target_id == Thread.id)
                & (Reaction.target_kind == TargetKind.THREAD)
                & (Reaction.kind == ReactionKind.FAVORITE),
            )
            .where(Reaction.user_id == user_id, Thread.deleted_at.is_(None))
            .order_by(Reaction.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        threads = list((await self._session.execute(stmt)).scalars().all())
        return await self._views(threads, user_id)

    async def list_visited_threads(self, user_id: int, page: Page) -> list[ThreadView]:
        """Visit history: one entry per thread, latest visit first."""
        last_visit = func.max(VisitLog.created_at).label("last_visit")
        visits = (
            select(VisitLog.thread_id, last_visit)
            .where(VisitLog.user_id == user_id)
            .group_by(VisitLog.thread_id)
            .subquery()
        )
        stmt = (
            select(Thread)
            .join(visits, visits.c.thread_id == Thread.id)
            .where(Thread.deleted_at.is_(None))
            .order_by(visits.c.last_visit.desc(), Thread.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        threads = list((await self._session.execute(stmt)).scalars().all())
        return await self._views(threads, user_id)

    async def list_staff_replies(self, thread_id: int) -> list[StaffReply]:
        await self.get_thread(thread_id)
        stmt = (
            select(StaffReply)
            .where(StaffReply.thread_id == thread_id, StaffReply.deleted_at.is_(None))
            .order_by(StaffReply.created_at, StaffReply.id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    # ── Delete / recover / purge ─────────────────────────────────

    async def delete_thread(
        self, actor_id: int, thread_id: int, *, as_admin: bool = False
    ) -> datetime:
        """Soft-delete a thread with its reports, staff replies, and comments.

        Returns the shared deletion stamp.
        """
        thread = await self.get_thread(thread_id)
        if as_admin:
            await require_moderator(self._session, actor_id, thread)
        elif thread.owner_id != actor_id:
            msg = f"User {actor_id} does not own thread {thread_id}"
            raise ForbiddenError(msg)

        stamp = _utcnow()
        reports = await self._reports.soft_delete_for_thread(thread.id, stamp)
        replies = await self._stamp_owned(StaffReply, thread.id, stamp)
        comments = await self._stamp_owned(Comment, thread.id, stamp)
        thread.deleted_at = stamp
        await self._session.flush()

        if as_admin:
            await self._moderation.record(
                actor_id, ModerationAction.THREAD_DELETE, thread.id
            )
        logger.info(
            "Thread %d soft-deleted by user %d (%d reports, %d staff replies, %d comments)",
            thread.id,
            actor_id,
            reports,
            replies,
            comments,
        )
        return stamp

    async def recover_thread(self, thread_id: int, *, actor_id: int | None = None) -> Thread:
        """Undo :meth:`delete_thread`, restoring exactly what it hid.

        With *actor_id*, the actor must hold moderation rights and the
        recovery is logged.
        """
        thread = await self.get_thread(thread_id, include_deleted=True)
        if thread.deleted_at is None:
            msg = f"Thread {thread_id} is not deleted"
            raise InvalidTransitionError(msg)
        if actor_id is not None:
            await require_moderator(self._session, actor_id, thread)

        stamp = thread.deleted_at
        await self._reports.recover_for_thread(thread.id, stamp)
        await self._restore_owned(StaffReply, thread.id, stamp)
        await self._restore_owned(Comment, thread.id, stamp)
        thread.deleted_at = None
        await self._session.flush()

        if actor_id is not None:
            await self._moderation.record(
                actor_id, ModerationAction.THREAD_RECOVER, thread.id
            )
        logger.info("Thread %d recovered", thread.id)
        return thread

    async def purge_thread(self, thread_id: int, *, actor_id: int | None = None) -> None:
        """Permanently remove a soft-deleted thread and all it owns."""
        thread = await self.get_thread(thread_id, include_deleted=True)
        if not thread.is_deleted:
            msg = f"Thread {thread_id} must be deleted before it is purged"
            raise InvalidTransitionError(msg)
        if actor_id is not None:
            await require_moderator(self._session, actor_id, thread)

        rows = (
            await self._session.execute(
                select(Comment.id, Comment.image_url).where(Comment.thread_id == thread.id)
            )
        ).all()
        comment_ids = [row[0] for row in rows]
        urls = [row[1] for row in rows if row[1]]
        urls.extend(
            (
                await self._session.execute(
                    select(ThreadImage.url).where(ThreadImage.thread_id == thread.id)
                )
            )
            .scalars()
            .all()
        )
        reply_ids: list[int] = []
        for reply_id, reply_urls in (
            await self._session.execute(
                select(StaffReply.id, StaffReply.image_urls).where(
                    StaffReply.thread_id == thread.id
                )
            )
        ).all():
            reply_ids.append(reply_id)
            urls.extend(reply_urls or [])

        await self._reactions.purge(TargetKind.THREAD, [thread.id])
        await self._reactions.purge(TargetKind.COMMENT, comment_ids)
        await self._unread.purge_sources(UnreadKind.COMMENT, comment_ids)
        await self._unread.purge_sources(UnreadKind.STAFF_REPLY, reply_ids)
        await self._reports.purge_for_thread(thread.id)
        for model in (StaffReply, Comment, ThreadAlias, ThreadImage, VisitLog):
            await self._session.execute(delete(model).where(model.thread_id == thread.id))
        await self._session.execute(delete(Thread).where(Thread.id == thread.id))
        await self._session.flush()

        if actor_id is not None:
            await self._moderation.record(actor_id, ModerationAction.THREAD_PURGE, thread_id)
        logger.info(
            "Thread %d purged (%d comments, %d images)", thread_id, len(comment_ids), len(urls)
        )
        await self._discard_images(await unreferenced_images(self._session, urls))

    async def purge_expired(self, older_than: timedelta) -> list[int]:
        """Purge every thread soft-deleted longer ago than *older_than*."""
        cutoff = _utcnow() - older_than
        stmt = (
            select(Thread.id)
            .where(Thread.deleted_at.is_not(None), Thread.deleted_at < cutoff)
            .order_by(Thread.id)
        )
        ids = list((await self._session.execute(stmt)).scalars().all())
        for thread_id in ids:
            await self.purge_thread(thread_id)
        return ids

    # ── Resolution ───────────────────────────────────────────────

    async def add_staff_reply(
        self,
        actor_id: int,
        thread_id: int,
        body: str,
        image_urls: Sequence[str] = (),
    ) -> StaffReply:
        """Official answer on a campus-service thread; moves it to staff-replied."""
        thread = await self.get_thread(thread_id)
        if thread.category is not ThreadCategory.CAMPUS_SERVICE:
            msg = f"Thread {thread_id} is not a campus-service thread"
            raise ValidationError(msg)
        await require_moderator(self._session, actor_id, thread)
        if thread.resolution is ResolutionStatus.RESOLVED:
            msg = f"Thread {thread_id} is already resolved"
            raise InvalidTransitionError(msg)

        reply = StaffReply(
            thread_id=thread.id, author_id=actor_id, body=body, image_urls=list(image_urls)
        )
        self._session.add(reply)
        thread.resolution = ResolutionStatus.STAFF_REPLIED
        await self._session.flush()

        if thread.owner_id != actor_id:
            await self._unread.notify(UnreadKind.STAFF_REPLY, thread.owner_id, reply.id)
        await self._moderation.record(actor_id, ModerationAction.STAFF_REPLY, thread.id)
        return reply

    async def rate_thread(self, actor_id: int, thread_id: int, rating: int) -> Thread:
        """Owner's rating of the staff answer; resolves the thread."""
        thread = await self.get_thread(thread_id)
        if thread.owner_id != actor_id:
            msg = f"Only the owner may rate thread {thread_id}"
            raise ForbiddenError(msg)
        if not MIN_RATING <= rating <= MAX_RATING:
            msg = f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
            raise ValidationError(msg)
        if thread.resolution is not ResolutionStatus.STAFF_REPLIED:
            msg = f"Thread {thread_id} is {thread.resolution.value}, not staff_replied"
            raise InvalidTransitionError(msg)
        thread.rating = rating
        thread.resolution = ResolutionStatus.RESOLVED
        await self._session.flush()
        return thread

    async def toggle_resolution(self, actor_id: int, thread_id: int) -> ResolutionStatus:
        """Flip between unresolved and staff-replied. Resolved is final."""
        thread = await self.get_thread(thread_id)
        await require_moderator(self._session, actor_id, thread)
        if thread.resolution is ResolutionStatus.RESOLVED:
            msg = f"Thread {thread_id} is resolved"
            raise InvalidTransitionError(msg)
        thread.resolution = (
            ResolutionStatus.STAFF_REPLIED
            if thread.resolution is ResolutionStatus.UNRESOLVED
            else ResolutionStatus.UNRESOLVED
        )
        await self._session.flush()
        await self._moderation.record(
            actor_id, ModerationAction.RESOLUTION_TOGGLE, thread.id, thread.resolution.value
        )
        return thread.resolution

    # ── Administrative edits ─────────────────────────────────────

    async def edit_department(
        self, actor_id: int, thread_id: int, department_id: int
    ) -> Thread:
        thread = await self.get_thread(thread_id)
        await require_moderator(self._session, actor_id, thread)
        if thread.category is not ThreadCategory.CAMPUS_SERVICE:
            msg = f"Thread {thread_id} is not routed to a department"
            raise InvalidTransitionError(msg)
        if await self._session.get(Department, department_id) is None:
            raise NotFoundError("department", department_id)
        previous = thread.department_id
        thread.department_id = department_id
        await self._session.flush()
        await self._moderation.record(
            actor_id,
            ModerationAction.DEPARTMENT_TRANSFER,
            thread.id,
            f"{previous}->{department_id}",
        )
        return thread

    async def edit_category(
        self, actor_id: int, thread_id: int, category: ThreadCategory
    ) -> Thread:
        """Move a thread between non-service categories."""
        thread = await self.get_thread(thread_id)
        await require_moderator(self._session, actor_id, thread)
        if ThreadCategory.CAMPUS_SERVICE in (thread.category, category):
            msg = "Campus-service threads cannot change category, nor can others become one"
            raise InvalidTransitionError(msg)
        if thread.category is category:
            msg = f"Thread {thread_id} is already {category.value}"
            raise InvalidTransitionError(msg)
        previous = thread.category
        thread.category = category
        await self._session.flush()
        await self._moderation.record(
            actor_id,
            ModerationAction.CATEGORY_TRANSFER,
            thread.id,
            f"{previous.value}->{category.value}",
        )
        return thread

    async def set_value(self, actor_id: int, thread_id: int, value: int) -> Thread:
        """Set the editorial boost used by the default listing order."""
        if value < 0:
            msg = f"Value must be >= 0, got {value}"
            raise ValidationError(msg)
        thread = await self.get_thread(thread_id)
        await require_moderator(self._session, actor_id, thread)
        thread.value = value
        await self._session.flush()
        await self._moderation.record(
            actor_id, ModerationAction.VALUE_SET, thread.id, str(value)
        )
        return thread

    # ── Internals ────────────────────────────────────────────────

    async def _check_routing(
        self,
        category: ThreadCategory,
        topic_id: int | None,
        department_id: int | None,
    ) -> None:
        if category is ThreadCategory.CAMPUS_SERVICE:
            if department_id is None:
                msg = "Campus-service threads require a department"
                raise ValidationError(msg)
            if topic_id is not None:
                msg = "Campus-service threads do not take a topic"
                raise ValidationError(msg)
            if await self._session.get(Department, department_id) is None:
                raise NotFoundError("department", department_id)
            return
        if department_id is not None:
            msg = f"{category.value} threads are not routed to a department"
            raise ValidationError(msg)
        if topic_id is not None and await self._session.get(Topic, topic_id) is None:
            raise NotFoundError("topic", topic_id)

    async def _stamp_owned(
        self, model: type[Comment] | type[StaffReply], thread_id: int, stamp: datetime
    ) -> int:
        # Set through the ORM so rows already loaded in this session follow.
        rows = await self._session.scalars(
            select(model).where(model.thread_id == thread_id, model.deleted_at.is_(None))
        )
        count = 0
        for row in rows:
            row.deleted_at = stamp
            count += 1
        await self._session.flush()
        return count

    async def _restore_owned(
        self, model: type[Comment] | type[StaffReply], thread_id: int, stamp: datetime
    ) -> int:
        rows = await self._session.scalars(
            select(model).where(model.thread_id == thread_id, model.deleted_at == stamp)
        )
        count = 0
        for row in rows:
            row.deleted_at = None
            count += 1
        await self._session.flush()
        return count

    async def _views(
        self, threads: Sequence[Thread], viewer_id: int | None
    ) -> list[ThreadView]:
        if not threads:
            return []
        ids = [t.id for t in threads]

        image_rows = await self._session.execute(
            select(ThreadImage.thread_id, ThreadImage.url)
            .where(ThreadImage.thread_id.in_(ids))
            .order_by(ThreadImage.thread_id, ThreadImage.position)
        )
        images: dict[int, list[str]] = {tid: [] for tid in ids}
        for tid, url in image_rows.all():
            images[tid].append(url)

        count_rows = await self._session.execute(
            select(Comment.thread_id, func.count())
            .where(Comment.thread_id.in_(ids), Comment.deleted_at.is_(None))
            .group_by(Comment.thread_id)
        )
        counts = dict(count_rows.all())

        dept_ids = {t.department_id for t in threads if t.department_id is not None}
        topic_ids = {t.topic_id for t in threads if t.topic_id is not None}
        dept_names: dict[int, str] = {}
        topic_names: dict[int, str] = {}
        if dept_ids:
            rows = await self._session.execute(
                select(Department.id, Department.name).where(Department.id.in_(dept_ids))
            )
            dept_names = dict(rows.all())
        if topic_ids:
            rows = await self._session.execute(
                select(Topic.id, Topic.name).where(Topic.id.in_(topic_ids))
            )
            topic_names = dict(rows.all())

        flags: dict[int, set[ReactionKind]] = {}
        if viewer_id is not None:
            flags = await self._reactions.active_kinds(viewer_id, TargetKind.THREAD, ids)

        views = []
        for t in threads:
            kinds = flags.get(t.id, set())
            views.append(
                ThreadView(
                    thread=t,
                    image_urls=images[t.id],
                    comment_count=int(counts.get(t.id, 0)),
                    department_name=dept_names.get(t.department_id or 0),
                    topic_name=topic_names.get(t.topic_id or 0),
                    is_like=ReactionKind.LIKE in kinds,
                    is_dislike=ReactionKind.DISLIKE in kinds,
                    is_favorite=ReactionKind.FAVORITE in kinds,
                    is_owner=viewer_id is not None and t.owner_id == viewer_id,
                )
            )
        return views

    async def _discard_images(self, urls: list[str]) -> None:
        if not urls or self._images is None:
            return
        try:
            await self._images.delete(urls)
        except StorageError:
            logger.exception("Could not remove %d thread images", len(urls))
