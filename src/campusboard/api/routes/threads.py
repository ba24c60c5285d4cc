"""/api/threads: create, list, view, delete/recover, resolution, admin edits."""

from __future__ import annotations

import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from campusboard.api.auth import get_current_user_id, get_optional_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.models import Campus, ResolutionStatus, StaffReply, ThreadCategory
from campusboard.forum.permissions import require_staff
from campusboard.forum.threads import SortMode, ThreadFilter, ThreadView, ValueMode

router = APIRouter(prefix="/api/threads", tags=["threads"])


# -- Models --------------------------------------------------------------------


class CreateThreadRequest(BaseModel):
    category: ThreadCategory
    campus: Campus = Campus.UNSPECIFIED
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    topic_id: int | None = None
    department_id: int | None = None
    images: list[str] = Field(default_factory=list, description="Base64-encoded files")


class ThreadResponse(BaseModel):
    thread_id: int
    owner_id: int
    category: str
    campus: str
    title: str
    body: str
    department_id: int | None = None
    department_name: str | None = None
    topic_id: int | None = None
    topic_name: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    favorite_count: int = 0
    like_count: int = 0
    dislike_count: int = 0
    comment_count: int = 0
    value: int = 0
    resolution: str
    rating: int | None = None
    is_like: bool = False
    is_dislike: bool = False
    is_favorite: bool = False
    is_owner: bool = False
    is_deleted: bool = False
    created_at: str
    updated_at: str

    @classmethod
    def from_view(cls, view: ThreadView) -> ThreadResponse:
        t = view.thread
        return cls(
            thread_id=t.id,
            owner_id=t.owner_id,
            category=t.category.value,
            campus=t.campus.value,
            title=t.title,
            body=t.body,
            department_id=t.department_id,
            department_name=view.department_name,
            topic_id=t.topic_id,
            topic_name=view.topic_name,
            image_urls=view.image_urls,
            favorite_count=t.favorite_count,
            like_count=t.like_count,
            dislike_count=t.dislike_count,
            comment_count=view.comment_count,
            value=t.value,
            resolution=t.resolution.value,
            rating=t.rating,
            is_like=view.is_like,
            is_dislike=view.is_dislike,
            is_favorite=view.is_favorite,
            is_owner=view.is_owner,
            is_deleted=view.is_deleted,
            created_at=t.created_at.isoformat(),
            updated_at=t.updated_at.isoformat(),
        )


class ThreadListResponse(BaseModel):
    threads: list[ThreadResponse]
    total: int


class StaffReplyRequest(BaseModel):
    body: str = Field(min_length=1)
    image_urls: list[str] = Field(default_factory=list)


class StaffReplyResponse(BaseModel):
    reply_id: int
    thread_id: int
    author_id: int
    body: str
    image_urls: list[str]
    created_at: str

    @classmethod
    def from_row(cls, reply: StaffReply) -> StaffReplyResponse:
        return cls(
            reply_id=reply.id,
            thread_id=reply.thread_id,
            author_id=reply.author_id,
            body=reply.body,
            image_urls=list(reply.image_urls or []),
            created_at=reply.created_at.isoformat(),
        )


class RatingRequest(BaseModel):
    rating: int


class ResolutionResponse(BaseModel):
    thread_id: int
    resolution: str


class DepartmentRequest(BaseModel):
    department_id: int


class CategoryRequest(BaseModel):
    category: ThreadCategory


class ValueRequest(BaseModel):
    value: int


class DeletedResponse(BaseModel):
    thread_id: int
    deleted_at: str


def _decode_images(encoded: list[str]) -> list[bytes]:
    try:
        return [base64.b64decode(item, validate=True) for item in encoded]
    except (binascii.Error, ValueError) as err:
        raise HTTPException(status_code=422, detail="Images must be base64") from err


# -- Listing -------------------------------------------------------------------


@router.get("", response_model=ThreadListResponse)
async def list_threads(
    request: Request,
    category: ThreadCategory | None = None,
    campus: Campus | None = None,
    department_id: int | None = None,
    resolution: ResolutionStatus | None = None,
    search: str = "",
    topic_id: int | None = None,
    value_mode: ValueMode = ValueMode.DEFAULT,
    sort: SortMode = SortMode.CREATED,
    include_deleted: bool = False,
    page: int = 1,
    size: int | None = None,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> ThreadListResponse:
    """List threads. ``include_deleted`` is reserved for staff."""
    async with open_forum(request) as forum:
        if include_deleted:
            if viewer_id is None:
                raise HTTPException(status_code=401, detail="Authentication required")
            await require_staff(forum.session, viewer_id)
        filt = ThreadFilter(
            category=category,
            campus=campus,
            department_id=department_id,
            resolution=resolution,
            search=search,
            topic_id=topic_id,
            value_mode=value_mode,
            sort=sort,
            include_deleted=include_deleted,
        )
        views, total = await forum.threads.list_threads(
            filt, forum.page(page, size), viewer_id=viewer_id
        )
        return ThreadListResponse(
            threads=[ThreadResponse.from_view(v) for v in views], total=total
        )


@router.get("/mine", response_model=ThreadListResponse)
async def my_threads(
    request: Request,
    page: int = 1,
    size: int | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadListResponse:
    async with open_forum(request) as forum:
        views = await forum.threads.list_user_threads(
            user_id, forum.page(page, size), viewer_id=user_id
        )
        return ThreadListResponse(
            threads=[ThreadResponse.from_view(v) for v in views], total=len(views)
        )


@router.get("/favorites", response_model=ThreadListResponse)
async def favorite_threads(
    request: Request,
    page: int = 1,
    size: int | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadListResponse:
    async with open_forum(request) as forum:
        views = await forum.threads.list_favorite_threads(user_id, forum.page(page, size))
        return ThreadListResponse(
            threads=[ThreadResponse.from_view(v) for v in views], total=len(views)
        )


@router.get("/visited", response_model=ThreadListResponse)
async def visited_threads(
    request: Request,
    page: int = 1,
    size: int | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadListResponse:
    async with open_forum(request) as forum:
        views = await forum.threads.list_visited_threads(user_id, forum.page(page, size))
        return ThreadListResponse(
            threads=[ThreadResponse.from_view(v) for v in views], total=len(views)
        )


# -- Create / view / delete ----------------------------------------------------


@router.post("", response_model=ThreadResponse, status_code=201)
async def create_thread(
    body: CreateThreadRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadResponse:
    images = _decode_images(body.images)
    async with open_forum(request) as forum:
        thread = await forum.threads.create_thread(
            user_id,
            body.category,
            body.campus,
            body.title,
            body.body,
            images,
            topic_id=body.topic_id,
            department_id=body.department_id,
        )
        view = await forum.threads.get_thread_view(thread.id, viewer_id=user_id)
        await forum.session.commit()
        return ThreadResponse.from_view(view)


@router.get("/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: int,
    request: Request,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> ThreadResponse:
    """Thread detail. Authenticated readers get a visit-history entry."""
    async with open_forum(request) as forum:
        view = await forum.threads.get_thread_view(
            thread_id, viewer_id=viewer_id, record_visit=viewer_id is not None
        )
        await forum.session.commit()
        return ThreadResponse.from_view(view)


@router.delete("/{thread_id}", response_model=DeletedResponse)
async def delete_thread(
    thread_id: int,
    request: Request,
    as_admin: bool = False,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> DeletedResponse:
    async with open_forum(request) as forum:
        stamp = await forum.threads.delete_thread(user_id, thread_id, as_admin=as_admin)
        await forum.session.commit()
    return DeletedResponse(thread_id=thread_id, deleted_at=stamp.isoformat())


@router.post("/{thread_id}/recover", response_model=ThreadResponse)
async def recover_thread(
    thread_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadResponse:
    async with open_forum(request) as forum:
        await forum.threads.recover_thread(thread_id, actor_id=user_id)
        view = await forum.threads.get_thread_view(thread_id, viewer_id=user_id)
        await forum.session.commit()
        return ThreadResponse.from_view(view)


# -- Resolution ----------------------------------------------------------------


@router.get("/{thread_id}/staff-replies", response_model=list[StaffReplyResponse])
async def list_staff_replies(thread_id: int, request: Request) -> list[StaffReplyResponse]:
    async with open_forum(request) as forum:
        replies = await forum.threads.list_staff_replies(thread_id)
        return [StaffReplyResponse.from_row(r) for r in replies]


@router.post(
    "/{thread_id}/staff-replies", response_model=StaffReplyResponse, status_code=201
)
async def add_staff_reply(
    thread_id: int,
    body: StaffReplyRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> StaffReplyResponse:
    async with open_forum(request) as forum:
        reply = await forum.threads.add_staff_reply(
            user_id, thread_id, body.body, body.image_urls
        )
        await forum.session.commit()
        return StaffReplyResponse.from_row(reply)


@router.post("/{thread_id}/rating", response_model=ResolutionResponse)
async def rate_thread(
    thread_id: int,
    body: RatingRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ResolutionResponse:
    async with open_forum(request) as forum:
        thread = await forum.threads.rate_thread(user_id, thread_id, body.rating)
        await forum.session.commit()
        return ResolutionResponse(thread_id=thread.id, resolution=thread.resolution.value)


@router.post("/{thread_id}/resolution/toggle", response_model=ResolutionResponse)
async def toggle_resolution(
    thread_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ResolutionResponse:
    async with open_forum(request) as forum:
        status = await forum.threads.toggle_resolution(user_id, thread_id)
        await forum.session.commit()
    return ResolutionResponse(thread_id=thread_id, resolution=status.value)


# -- Administrative edits ------------------------------------------------------


@router.put("/{thread_id}/department", response_model=ThreadResponse)
async def edit_department(
    thread_id: int,
    body: DepartmentRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadResponse:
    async with open_forum(request) as forum:
        await forum.threads.edit_department(user_id, thread_id, body.department_id)
        view = await forum.threads.get_thread_view(thread_id, viewer_id=user_id)
        await forum.session.commit()
        return ThreadResponse.from_view(view)


@router.put("/{thread_id}/category", response_model=ThreadResponse)
async def edit_category(
    thread_id: int,
    body: CategoryRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadResponse:
    async with open_forum(request) as forum:
        await forum.threads.edit_category(user_id, thread_id, body.category)
        view = await forum.threads.get_thread_view(thread_id, viewer_id=user_id)
        await forum.session.commit()
        return ThreadResponse.from_view(view)


@router.put("/{thread_id}/value", response_model=ThreadResponse)
async def set_value(
    thread_id: int,
    body: ValueRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ThreadResponse:
    async with open_forum(request) as forum:
        await forum.threads.set_value(user_id, thread_id, body.value)
        view = await forum.threads.get_thread_view(thread_id, viewer_id=user_id)
        await forum.session.commit()
        return ThreadResponse.from_view(view)
