"""Per-session composition of the forum components.

``Forum`` wires one instance of every component to a single
``AsyncSession`` so an operation that spans several of them (a reply
touching identity, comments, and unread) shares one transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from campusboard.config.schema import GeneralConfig
from campusboard.core.retry import RetryConfig
from campusboard.forum.announcements import AnnouncementBoard
from campusboard.forum.comments import CommentTree
from campusboard.forum.identity import IdentityAssigner
from campusboard.forum.moderation import ModerationLog
from campusboard.forum.paging import Page
from campusboard.forum.reactions import ReactionLedger
from campusboard.forum.reports import ReportLedger
from campusboard.forum.threads import ThreadStore
from campusboard.forum.topics import TopicLog
from campusboard.forum.unread import UnreadLedger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.integrations.images import ImageStore
    from campusboard.integrations.notifier import Notifier
    from campusboard.integrations.relevance import RelevanceEngine


class Forum:
    """All forum components bound to one session."""

    def __init__(
        self,
        session: AsyncSession,
        config: GeneralConfig | None = None,
        *,
        images: ImageStore | None = None,
        relevance: RelevanceEngine | None = None,
        notifier: Notifier | None = None,
        max_images: int = 3,
    ) -> None:
        self.session = session
        self.config = config or GeneralConfig()
        cfg = self.config

        self.topics = TopicLog(session)
        self.moderation = ModerationLog(session)
        self.unread = UnreadLedger(session)
        self.reports = ReportLedger(session)
        self.reactions = ReactionLedger(session, topics=self.topics)
        self.identity = IdentityAssigner(
            session,
            owner_name=cfg.owner_name,
            prefix=cfg.alias_prefix,
            retry=RetryConfig(max_retries=cfg.alias_claim_retries),
        )
        self.comments = CommentTree(
            session,
            identity=self.identity,
            reactions=self.reactions,
            unread=self.unread,
            reports=self.reports,
            topics=self.topics,
            moderation=self.moderation,
            images=images,
            short_comment_limit=cfg.short_comment_limit,
            short_reply_limit=cfg.short_reply_limit,
        )
        self.threads = ThreadStore(
            session,
            reactions=self.reactions,
            unread=self.unread,
            reports=self.reports,
            moderation=self.moderation,
            topics=self.topics,
            images=images,
            relevance=relevance,
            max_images=max_images,
        )
        self.announcements = AnnouncementBoard(
            session, unread=self.unread, notifier=notifier
        )

    def page(self, number: int = 1, size: int | None = None) -> Page:
        """Page window bounded by the configured maximum size."""
        return Page.clamp(
            number, size or self.config.page_size, self.config.max_page_size
        )
