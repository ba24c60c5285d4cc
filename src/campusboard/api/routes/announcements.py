"""Announcements: super admins publish, every user reads."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from campusboard.api.auth import get_current_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.models import Announcement
from campusboard.forum.permissions import require_super

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


class PublishRequest(BaseModel):
    sender: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)


class AnnouncementResponse(BaseModel):
    announcement_id: int
    sender: str
    title: str
    body: str
    created_at: str

    @classmethod
    def from_row(cls, a: Announcement) -> AnnouncementResponse:
        return cls(
            announcement_id=a.id,
            sender=a.sender,
            title=a.title,
            body=a.body,
            created_at=a.created_at.isoformat(),
        )


class PublishResponse(BaseModel):
    announcement: AnnouncementResponse
    recipients: int


class AnnouncementListResponse(BaseModel):
    announcements: list[AnnouncementResponse]
    total: int


@router.post("", response_model=PublishResponse, status_code=201)
async def publish(
    body: PublishRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> PublishResponse:
    async with open_forum(request) as forum:
        await require_super(forum.session, user_id)
        announcement, count = await forum.announcements.publish(
            body.sender, body.title, body.body
        )
        await forum.session.commit()
        return PublishResponse(
            announcement=AnnouncementResponse.from_row(announcement), recipients=count
        )


@router.get("", response_model=AnnouncementListResponse)
async def list_announcements(
    request: Request, page: int = 1, size: int | None = None
) -> AnnouncementListResponse:
    async with open_forum(request) as forum:
        items, total = await forum.announcements.list_announcements(forum.page(page, size))
        return AnnouncementListResponse(
            announcements=[AnnouncementResponse.from_row(a) for a in items], total=total
        )


@router.get("/{announcement_id}", response_model=AnnouncementResponse)
async def read_announcement(
    announcement_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> AnnouncementResponse:
    async with open_forum(request) as forum:
        announcement = await forum.announcements.read(announcement_id, user_id)
        await forum.session.commit()
        return AnnouncementResponse.from_row(announcement)
