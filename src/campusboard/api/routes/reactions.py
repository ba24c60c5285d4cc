"""Reaction toggles: PUT activates, DELETE deactivates, both return the count."""

from __future__ import annotations

import enum

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from campusboard.api.auth import get_current_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.models import ReactionKind, TargetKind

router = APIRouter(prefix="/api", tags=["reactions"])


class TargetPath(enum.Enum):
    THREADS = "threads"
    COMMENTS = "comments"


_TARGETS = {TargetPath.THREADS: TargetKind.THREAD, TargetPath.COMMENTS: TargetKind.COMMENT}


class ReactionResponse(BaseModel):
    target: str
    target_id: int
    kind: str
    active: bool
    count: int


@router.put("/{target}/{target_id}/reactions/{kind}", response_model=ReactionResponse)
async def activate(
    target: TargetPath,
    target_id: int,
    kind: ReactionKind,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ReactionResponse:
    target_kind = _TARGETS[target]
    async with open_forum(request) as forum:
        count = await forum.reactions.activate(kind, user_id, target_kind, target_id)
        await forum.session.commit()
    return ReactionResponse(
        target=target_kind.value, target_id=target_id, kind=kind.value, active=True, count=count
    )


@router.delete("/{target}/{target_id}/reactions/{kind}", response_model=ReactionResponse)
async def deactivate(
    target: TargetPath,
    target_id: int,
    kind: ReactionKind,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ReactionResponse:
    target_kind = _TARGETS[target]
    async with open_forum(request) as forum:
        count = await forum.reactions.deactivate(kind, user_id, target_kind, target_id)
        await forum.session.commit()
    return ReactionResponse(
        target=target_kind.value, target_id=target_id, kind=kind.value, active=False, count=count
    )
