"""Baseline forum schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: str | None = None


def _ts(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def upgrade() -> None:
    # ── Users & routing ──
    op.create_table(
        "users",
        _id(),
        sa.Column("number", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_super", sa.Boolean(), nullable=False),
        sa.Column("is_service_admin", sa.Boolean(), nullable=False),
        sa.Column("is_community_admin", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )
    op.create_table(
        "departments",
        _id(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("introduction", sa.Text(), nullable=False),
    )
    op.create_table(
        "department_members",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column(
            "department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id"),
            primary_key=True,
        ),
    )
    op.create_table(
        "topics",
        _id(),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        _ts("created_at"),
    )
    op.create_table(
        "topic_events",
        _id(),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("topics.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        _ts("created_at"),
    )
    op.create_index(
        "ix_topic_events_topic_created", "topic_events", ["topic_id", "created_at"]
    )

    # ── Threads ──
    op.create_table(
        "threads",
        _id(),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column(
            "department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True
        ),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("campus", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("favorite_count", sa.Integer(), nullable=False),
        sa.Column("like_count", sa.Integer(), nullable=False),
        sa.Column("dislike_count", sa.Integer(), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("resolution", sa.String(20), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        _ts("deleted_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "(category = 'campus_service' AND department_id IS NOT NULL)"
            " OR (category <> 'campus_service' AND department_id IS NULL)",
            name="ck_threads_department_iff_service",
        ),
        sa.CheckConstraint(
            "(resolution = 'resolved' AND rating BETWEEN 1 AND 10)"
            " OR (resolution <> 'resolved' AND rating IS NULL)",
            name="ck_threads_rating_iff_resolved",
        ),
        sa.CheckConstraint(
            "favorite_count >= 0 AND like_count >= 0 AND dislike_count >= 0",
            name="ck_threads_counters_non_negative",
        ),
    )
    op.create_index("ix_threads_owner_id", "threads", ["owner_id"])
    op.create_index("ix_threads_category", "threads", ["category"])
    op.create_index("ix_threads_department_id", "threads", ["department_id"])
    op.create_index("ix_threads_topic_id", "threads", ["topic_id"])
    op.create_index("ix_threads_created_at", "threads", ["created_at"])
    op.create_index("ix_threads_updated_at", "threads", ["updated_at"])
    op.create_index("ix_threads_value", "threads", ["value"])

    op.create_table(
        "thread_images",
        _id(),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_index("ix_thread_images_thread_id", "thread_images", ["thread_id"])

    op.create_table(
        "thread_aliases",
        _id(),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("thread_id", "user_id", name="uq_thread_aliases_user"),
        sa.UniqueConstraint("thread_id", "name", name="uq_thread_aliases_name"),
    )

    op.create_table(
        "comments",
        _id(),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("display_name", sa.String(50), nullable=False),
        sa.Column("reply_to", sa.Integer(), nullable=False),
        sa.Column("reply_to_name", sa.String(50), nullable=False),
        sa.Column("thread_root", sa.Integer(), nullable=False),
        sa.Column("like_count", sa.Integer(), nullable=False),
        sa.Column("dislike_count", sa.Integer(), nullable=False),
        _ts("deleted_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "like_count >= 0 AND dislike_count >= 0",
            name="ck_comments_counters_non_negative",
        ),
    )
    op.create_index("ix_comments_author_id", "comments", ["author_id"])
    op.create_index(
        "ix_comments_thread_root_created",
        "comments",
        ["thread_id", "thread_root", "created_at"],
    )
    op.create_index("ix_comments_root_likes", "comments", ["thread_root", "like_count"])

    op.create_table(
        "staff_replies",
        _id(),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("image_urls", sa.JSON(), nullable=False),
        _ts("deleted_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_staff_replies_thread_id", "staff_replies", ["thread_id"])

    op.create_table(
        "reports",
        _id(),
        sa.Column("reporter_id", sa.Integer(), nullable=False),
        sa.Column("target_kind", sa.String(20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("solved", sa.Boolean(), nullable=False),
        _ts("deleted_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_reports_target", "reports", ["target_kind", "target_id"])
    op.create_index("ix_reports_thread_id", "reports", ["thread_id"])

    op.create_table(
        "visit_logs",
        _id(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_visit_logs_user_created", "visit_logs", ["user_id", "created_at"])
    op.create_index("ix_visit_logs_thread_id", "visit_logs", ["thread_id"])

    # ── Engagement (weak references) ──
    op.create_table(
        "reactions",
        _id(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("target_kind", sa.String(20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint(
            "user_id", "target_kind", "target_id", "kind", name="uq_reactions_once"
        ),
    )
    op.create_index("ix_reactions_target", "reactions", ["target_kind", "target_id"])

    op.create_table(
        "unread_records",
        _id(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )
    op.create_index(
        "ix_unread_user_kind_read", "unread_records", ["user_id", "kind", "is_read"]
    )
    op.create_index("ix_unread_source", "unread_records", ["kind", "source_id"])

    op.create_table(
        "announcements",
        _id(),
        sa.Column("sender", sa.String(100), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _ts("created_at"),
    )

    op.create_table(
        "moderation_log",
        _id(),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("detail", sa.Text(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_moderation_log_actor_id", "moderation_log", ["actor_id"])


def downgrade() -> None:
    for table in (
        "moderation_log",
        "announcements",
        "unread_records",
        "reactions",
        "visit_logs",
        "reports",
        "staff_replies",
        "comments",
        "thread_aliases",
        "thread_images",
        "threads",
        "topic_events",
        "topics",
        "department_members",
        "departments",
        "users",
    ):
        op.drop_table(table)
