"""SQLAlchemy models for the discussion and engagement core.

Owned by a Thread: Comment, StaffReply, Report, ThreadImage, ThreadAlias.
Weak references (plain ids, purged explicitly): Reaction, UnreadRecord.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Stored with zone on PostgreSQL; SQLite keeps the UTC wall time.
Timestamp = DateTime(timezone=True)


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


def _enum(cls: type[enum.Enum]) -> SAEnum:
    """Store an enum by value in a plain VARCHAR column."""
    return SAEnum(
        cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """Declarative base for all campusboard models."""


# ── Enumerations ─────────────────────────────────────────────────


class ThreadCategory(enum.Enum):
    """Thread type. Only campus-service threads are routed to a department."""

    CAMPUS_SERVICE = "campus_service"
    ANONYMOUS = "anonymous"
    GENERAL = "general"


class Campus(enum.Enum):
    UNSPECIFIED = "unspecified"
    OLD = "old"
    NEW = "new"


class ResolutionStatus(enum.Enum):
    """Unresolved -> StaffReplied -> Resolved. Nothing leaves Resolved."""

    UNRESOLVED = "unresolved"
    STAFF_REPLIED = "staff_replied"
    RESOLVED = "resolved"


class TargetKind(enum.Enum):
    THREAD = "thread"
    COMMENT = "comment"


class ReactionKind(enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"
    FAVORITE = "favorite"


class UnreadKind(enum.Enum):
    COMMENT = "comment"
    STAFF_REPLY = "staff_reply"
    ANNOUNCEMENT = "announcement"


class TopicEventKind(enum.Enum):
    THREAD_ADDED = "thread_added"
    COMMENT_ADDED = "comment_added"
    LIKED = "liked"
    UNLIKED = "unliked"
    DISLIKED = "disliked"
    UNDISLIKED = "undisliked"
    FAVORITED = "favorited"
    UNFAVORITED = "unfavorited"


class ModerationAction(enum.Enum):
    THREAD_DELETE = "thread_delete"
    THREAD_RECOVER = "thread_recover"
    THREAD_PURGE = "thread_purge"
    COMMENT_DELETE = "comment_delete"
    STAFF_REPLY = "staff_reply"
    DEPARTMENT_TRANSFER = "department_transfer"
    CATEGORY_TRANSFER = "category_transfer"
    VALUE_SET = "value_set"
    RESOLUTION_TOGGLE = "resolution_toggle"


# ── Users & routing ──────────────────────────────────────────────


class User(Base):
    """Local view of a user: contact number and administrative rights."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[str] = mapped_column(String(32), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_super: Mapped[bool] = mapped_column(Boolean, default=False)
    is_service_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    is_community_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)

    @property
    def is_staff(self) -> bool:
        return self.is_super or self.is_service_admin or self.is_community_admin


class Department(Base):
    """Campus office that answers campus-service threads."""

    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    introduction: Mapped[str] = mapped_column(Text, default="")


class DepartmentMember(Base):
    __tablename__ = "department_members"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    department_id: Mapped[int] = mapped_column(
        ForeignKey("departments.id"), primary_key=True
    )


class Topic(Base):
    """Tag attached to anonymous/general threads."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class TopicEvent(Base):
    """Engagement event used for topic popularity."""

    __tablename__ = "topic_events"
    __table_args__ = (Index("ix_topic_events_topic_created", "topic_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"))
    kind: Mapped[TopicEventKind] = mapped_column(_enum(TopicEventKind))
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


# ── Threads ──────────────────────────────────────────────────────


class Thread(Base):
    """A top-level discussion post."""

    __tablename__ = "threads"
    __table_args__ = (
        Index("ix_threads_created_at", "created_at"),
        Index("ix_threads_updated_at", "updated_at"),
        Index("ix_threads_value", "value"),
        CheckConstraint(
            "(category = 'campus_service' AND department_id IS NOT NULL)"
            " OR (category <> 'campus_service' AND department_id IS NULL)",
            name="ck_threads_department_iff_service",
        ),
        CheckConstraint(
            "(resolution = 'resolved' AND rating BETWEEN 1 AND 10)"
            " OR (resolution <> 'resolved' AND rating IS NULL)",
            name="ck_threads_rating_iff_resolved",
        ),
        CheckConstraint(
            "favorite_count >= 0 AND like_count >= 0 AND dislike_count >= 0",
            name="ck_threads_counters_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    category: Mapped[ThreadCategory] = mapped_column(_enum(ThreadCategory), index=True)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True, index=True, default=None
    )
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id"), nullable=True, index=True, default=None
    )
    campus: Mapped[Campus] = mapped_column(_enum(Campus), default=Campus.UNSPECIFIED)
    title: Mapped[str] = mapped_column(String(200))
    body: Mapped[str] = mapped_column(Text)
    favorite_count: Mapped[int] = mapped_column(Integer, default=0)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    dislike_count: Mapped[int] = mapped_column(Integer, default=0)
    value: Mapped[int] = mapped_column(Integer, default=0)
    resolution: Mapped[ResolutionStatus] = mapped_column(
        _enum(ResolutionStatus), default=ResolutionStatus.UNRESOLVED
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    deleted_at: Mapped[datetime | None] = mapped_column(
        Timestamp, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)

    images: Mapped[list[ThreadImage]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ThreadImage.position",
    )
    department: Mapped[Department | None] = relationship()
    topic: Mapped[Topic | None] = relationship()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ThreadImage(Base):
    __tablename__ = "thread_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), index=True)
    url: Mapped[str] = mapped_column(String(500))
    position: Mapped[int] = mapped_column(Integer, default=0)

    thread: Mapped[Thread] = relationship(back_populates="images")


class ThreadAlias(Base):
    """Display name claimed by a non-owner user within one thread."""

    __tablename__ = "thread_aliases"
    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_thread_aliases_user"),
        UniqueConstraint("thread_id", "name", name="uq_thread_aliases_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"))
    user_id: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class Comment(Base):
    """A comment on a thread; at most two levels deep."""

    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_thread_root_created", "thread_id", "thread_root", "created_at"),
        Index("ix_comments_root_likes", "thread_root", "like_count"),
        CheckConstraint(
            "like_count >= 0 AND dislike_count >= 0",
            name="ck_comments_counters_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"))
    author_id: Mapped[int] = mapped_column(Integer, index=True)
    body: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str | None] = mapped_column(
        String(500), nullable=True, default=None
    )
    display_name: Mapped[str] = mapped_column(String(50))
    reply_to: Mapped[int] = mapped_column(Integer, default=0)
    reply_to_name: Mapped[str] = mapped_column(String(50), default="")
    thread_root: Mapped[int] = mapped_column(Integer, default=0)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    dislike_count: Mapped[int] = mapped_column(Integer, default=0)
    deleted_at: Mapped[datetime | None] = mapped_column(
        Timestamp, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)

    @property
    def is_top_level(self) -> bool:
        return self.thread_root == 0


class StaffReply(Base):
    """Official answer from department staff on a campus-service thread."""

    __tablename__ = "staff_replies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), index=True)
    author_id: Mapped[int] = mapped_column(Integer)
    body: Mapped[str] = mapped_column(Text, default="")
    image_urls: Mapped[list[str]] = mapped_column(JSON, default=list)
    deleted_at: Mapped[datetime | None] = mapped_column(
        Timestamp, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class Report(Base):
    """User report against a thread or a comment."""

    __tablename__ = "reports"
    __table_args__ = (Index("ix_reports_target", "target_kind", "target_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reporter_id: Mapped[int] = mapped_column(Integer)
    target_kind: Mapped[TargetKind] = mapped_column(_enum(TargetKind))
    target_id: Mapped[int] = mapped_column(Integer)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), index=True)
    reason: Mapped[str] = mapped_column(Text)
    solved: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(
        Timestamp, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class VisitLog(Base):
    __tablename__ = "visit_logs"
    __table_args__ = (Index("ix_visit_logs_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


# ── Engagement (weak references) ─────────────────────────────────


class Reaction(Base):
    """One active like, dislike, or favorite by a user on a target."""

    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "target_kind", "target_id", "kind", name="uq_reactions_once"
        ),
        Index("ix_reactions_target", "target_kind", "target_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer)
    target_kind: Mapped[TargetKind] = mapped_column(_enum(TargetKind))
    target_id: Mapped[int] = mapped_column(Integer)
    kind: Mapped[ReactionKind] = mapped_column(_enum(ReactionKind))
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class UnreadRecord(Base):
    """Notification row: an event the user has not acknowledged yet."""

    __tablename__ = "unread_records"
    __table_args__ = (
        Index("ix_unread_user_kind_read", "user_id", "kind", "is_read"),
        Index("ix_unread_source", "kind", "source_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer)
    kind: Mapped[UnreadKind] = mapped_column(_enum(UnreadKind))
    source_id: Mapped[int] = mapped_column(Integer)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class Announcement(Base):
    """Notice broadcast to every active non-staff user."""

    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender: Mapped[str] = mapped_column(String(100))
    title: Mapped[str] = mapped_column(String(200))
    body: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)


class ModerationEntry(Base):
    """Audit row for an administrative action."""

    __tablename__ = "moderation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, index=True)
    action: Mapped[ModerationAction] = mapped_column(_enum(ModerationAction))
    target_id: Mapped[int] = mapped_column(Integer)
    detail: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_utcnow)
