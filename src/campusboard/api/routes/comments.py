"""Comment endpoints: top-level comments, replies, nested listings, deletion."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from campusboard.api.auth import get_current_user_id, get_optional_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.comments import CommentView

router = APIRouter(prefix="/api", tags=["comments"])


class CommentRequest(BaseModel):
    body: str = ""
    image_url: str | None = None


class CommentResponse(BaseModel):
    comment_id: int
    thread_id: int
    author_id: int
    display_name: str
    body: str
    image_url: str | None = None
    reply_to: int = 0
    reply_to_name: str = ""
    thread_root: int = 0
    like_count: int = 0
    reply_count: int = 0
    replies: list[CommentResponse] = Field(default_factory=list)
    is_like: bool = False
    is_dislike: bool = False
    is_owner: bool = False
    created_at: str

    @classmethod
    def from_view(cls, view: CommentView) -> CommentResponse:
        c = view.comment
        return cls(
            comment_id=c.id,
            thread_id=c.thread_id,
            author_id=c.author_id,
            display_name=c.display_name,
            body=c.body,
            image_url=c.image_url,
            reply_to=c.reply_to,
            reply_to_name=c.reply_to_name,
            thread_root=c.thread_root,
            like_count=c.like_count,
            reply_count=view.reply_count,
            replies=[cls.from_view(r) for r in view.replies],
            is_like=view.is_like,
            is_dislike=view.is_dislike,
            is_owner=view.is_owner,
            created_at=c.created_at.isoformat(),
        )


class DeletedCommentsResponse(BaseModel):
    deleted: list[int]


@router.get("/threads/{thread_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    thread_id: int,
    request: Request,
    page: int = 1,
    size: int | None = None,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> list[CommentResponse]:
    """Top-level comments, oldest first, each with its best replies."""
    async with open_forum(request) as forum:
        views = await forum.comments.list_top_level(
            thread_id, forum.page(page, size), viewer_id=viewer_id
        )
        return [CommentResponse.from_view(v) for v in views]


@router.get("/threads/{thread_id}/comments/short", response_model=list[CommentResponse])
async def short_comments(
    thread_id: int,
    request: Request,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> list[CommentResponse]:
    async with open_forum(request) as forum:
        views = await forum.comments.list_short(thread_id, viewer_id=viewer_id)
        return [CommentResponse.from_view(v) for v in views]


@router.post(
    "/threads/{thread_id}/comments", response_model=CommentResponse, status_code=201
)
async def add_comment(
    thread_id: int,
    body: CommentRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> CommentResponse:
    async with open_forum(request) as forum:
        comment = await forum.comments.add_top_level_comment(
            thread_id, user_id, body.body, body.image_url
        )
        await forum.session.commit()
        return CommentResponse.from_view(CommentView(comment=comment, is_owner=True))


@router.post("/comments/{comment_id}/replies", response_model=CommentResponse, status_code=201)
async def add_reply(
    comment_id: int,
    body: CommentRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> CommentResponse:
    async with open_forum(request) as forum:
        comment = await forum.comments.add_reply(
            comment_id, user_id, body.body, body.image_url
        )
        await forum.session.commit()
        return CommentResponse.from_view(CommentView(comment=comment, is_owner=True))


@router.get("/comments/{comment_id}/replies", response_model=list[CommentResponse])
async def list_replies(
    comment_id: int,
    request: Request,
    page: int = 1,
    size: int | None = None,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> list[CommentResponse]:
    async with open_forum(request) as forum:
        views = await forum.comments.list_replies(
            comment_id, forum.page(page, size), viewer_id=viewer_id
        )
        return [CommentResponse.from_view(v) for v in views]


@router.get("/comments/{comment_id}", response_model=CommentResponse)
async def get_comment(
    comment_id: int,
    request: Request,
    viewer_id: int | None = Depends(get_optional_user_id),  # noqa: B008
) -> CommentResponse:
    async with open_forum(request) as forum:
        view = await forum.comments.get_comment_view(comment_id, viewer_id=viewer_id)
        return CommentResponse.from_view(view)


@router.delete("/comments/{comment_id}", response_model=DeletedCommentsResponse)
async def delete_comment(
    comment_id: int,
    request: Request,
    as_admin: bool = False,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> DeletedCommentsResponse:
    async with open_forum(request) as forum:
        ids = await forum.comments.delete_comment(user_id, comment_id, as_admin=as_admin)
        await forum.session.commit()
    return DeletedCommentsResponse(deleted=ids)
