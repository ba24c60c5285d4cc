"""Topics and their engagement log."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from campusboard.core.errors import NotFoundError
from campusboard.forum.models import Topic, TopicEvent, TopicEventKind, _utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class TopicLog:
    """Topic CRUD plus the engagement events that rank them."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_topic(self, name: str) -> Topic:
        topic = Topic(name=name)
        self._session.add(topic)
        await self._session.flush()
        return topic

    async def get_topic(self, topic_id: int) -> Topic:
        topic = await self._session.get(Topic, topic_id)
        if topic is None:
            raise NotFoundError("topic", topic_id)
        return topic

    async def search_topics(self, name: str = "", *, limit: int = 20) -> list[Topic]:
        stmt = select(Topic).order_by(Topic.id).limit(limit)
        if name:
            stmt = stmt.where(Topic.name.icontains(name, autoescape=True))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def log(self, topic_id: int | None, kind: TopicEventKind) -> None:
        """Record an engagement event. A thread without a topic logs nothing."""
        if topic_id is None:
            return
        self._session.add(TopicEvent(topic_id=topic_id, kind=kind))
        await self._session.flush()

    async def hot_topics(
        self, *, within: timedelta = timedelta(days=7), limit: int = 5
    ) -> list[tuple[Topic, int]]:
        """Topics with the most engagement events in the recent window."""
        since = _utcnow() - within
        activity = func.count(TopicEvent.id).label("activity")
        stmt = (
            select(Topic, activity)
            .join(TopicEvent, TopicEvent.topic_id == Topic.id)
            .where(TopicEvent.created_at >= since)
            .group_by(Topic.id)
            .order_by(activity.desc(), Topic.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]
