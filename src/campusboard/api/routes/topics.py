"""Topic search, creation, and popularity."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from campusboard.api.auth import get_current_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.permissions import require_super

router = APIRouter(prefix="/api/topics", tags=["topics"])


class TopicRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class TopicResponse(BaseModel):
    topic_id: int
    name: str
    activity: int = 0


@router.get("", response_model=list[TopicResponse])
async def search_topics(request: Request, name: str = "", limit: int = 20) -> list[TopicResponse]:
    async with open_forum(request) as forum:
        topics = await forum.topics.search_topics(name, limit=limit)
        return [TopicResponse(topic_id=t.id, name=t.name) for t in topics]


@router.get("/hot", response_model=list[TopicResponse])
async def hot_topics(request: Request, days: int = 7, limit: int = 5) -> list[TopicResponse]:
    async with open_forum(request) as forum:
        ranked = await forum.topics.hot_topics(within=timedelta(days=days), limit=limit)
        return [TopicResponse(topic_id=t.id, name=t.name, activity=n) for t, n in ranked]


@router.post("", response_model=TopicResponse, status_code=201)
async def create_topic(
    body: TopicRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> TopicResponse:
    async with open_forum(request) as forum:
        await require_super(forum.session, user_id)
        topic = await forum.topics.create_topic(body.name)
        await forum.session.commit()
        return TopicResponse(topic_id=topic.id, name=topic.name)
