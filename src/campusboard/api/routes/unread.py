"""Unread counts, listings, and acknowledgement."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from campusboard.api.auth import get_current_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.models import UnreadKind

router = APIRouter(prefix="/api/unread", tags=["unread"])


class UnreadCountsResponse(BaseModel):
    counts: dict[str, int]
    total: int


class UnreadEntryResponse(BaseModel):
    kind: str
    source_id: int
    is_read: bool
    created_at: str


class MarkedResponse(BaseModel):
    marked: int


@router.get("/counts", response_model=UnreadCountsResponse)
async def counts(
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> UnreadCountsResponse:
    async with open_forum(request) as forum:
        by_kind = await forum.unread.count_unread(user_id)
    return UnreadCountsResponse(
        counts={k.value: v for k, v in by_kind.items()}, total=sum(by_kind.values())
    )


@router.post("/read-all", response_model=MarkedResponse)
async def mark_all_read(
    request: Request,
    kind: UnreadKind | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> MarkedResponse:
    async with open_forum(request) as forum:
        marked = await forum.unread.mark_all_read(user_id, kind)
        await forum.session.commit()
    return MarkedResponse(marked=marked)


@router.get("/{kind}", response_model=list[UnreadEntryResponse])
async def list_unread(
    kind: UnreadKind,
    request: Request,
    page: int = 1,
    size: int | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> list[UnreadEntryResponse]:
    async with open_forum(request) as forum:
        entries = await forum.unread.list_unread(user_id, kind, forum.page(page, size))
    return [
        UnreadEntryResponse(
            kind=e.kind.value,
            source_id=e.source_id,
            is_read=e.is_read,
            created_at=e.created_at.isoformat(),
        )
        for e in entries
    ]


@router.post("/{kind}/{source_id}/read", response_model=MarkedResponse)
async def mark_read(
    kind: UnreadKind,
    source_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> MarkedResponse:
    async with open_forum(request) as forum:
        marked = await forum.unread.mark_read(kind, user_id, source_id)
        await forum.session.commit()
    return MarkedResponse(marked=marked)
