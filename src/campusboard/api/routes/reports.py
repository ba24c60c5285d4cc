"""Report endpoints. Filing is open to any user; review is staff-only."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from campusboard.api.auth import get_current_user_id
from campusboard.api.deps import open_forum
from campusboard.forum.models import Report, TargetKind
from campusboard.forum.permissions import require_staff

router = APIRouter(prefix="/api/reports", tags=["reports"])


class ReportRequest(BaseModel):
    target_kind: TargetKind
    target_id: int
    reason: str = Field(min_length=1)


class SolveRequest(BaseModel):
    target_kind: TargetKind
    target_id: int


class ReportResponse(BaseModel):
    report_id: int
    reporter_id: int
    target_kind: str
    target_id: int
    thread_id: int
    reason: str
    solved: bool
    is_deleted: bool
    created_at: str

    @classmethod
    def from_row(cls, report: Report) -> ReportResponse:
        return cls(
            report_id=report.id,
            reporter_id=report.reporter_id,
            target_kind=report.target_kind.value,
            target_id=report.target_id,
            thread_id=report.thread_id,
            reason=report.reason,
            solved=report.solved,
            is_deleted=report.is_deleted,
            created_at=report.created_at.isoformat(),
        )


class SolvedResponse(BaseModel):
    solved: int


@router.post("", response_model=ReportResponse, status_code=201)
async def add_report(
    body: ReportRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ReportResponse:
    async with open_forum(request) as forum:
        report = await forum.reports.add_report(
            user_id, body.target_kind, body.target_id, body.reason
        )
        await forum.session.commit()
        return ReportResponse.from_row(report)


@router.get("", response_model=list[ReportResponse])
async def list_reports(
    request: Request,
    target_kind: TargetKind | None = None,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> list[ReportResponse]:
    async with open_forum(request) as forum:
        await require_staff(forum.session, user_id)
        reports = await forum.reports.list_reports(target_kind)
        return [ReportResponse.from_row(r) for r in reports]


@router.post("/solve", response_model=SolvedResponse)
async def solve_reports(
    body: SolveRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> SolvedResponse:
    async with open_forum(request) as forum:
        await require_staff(forum.session, user_id)
        solved = await forum.reports.solve_reports(body.target_kind, body.target_id)
        await forum.session.commit()
    return SolvedResponse(solved=solved)


@router.delete("/{report_id}", response_model=ReportResponse)
async def delete_report(
    report_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),  # noqa: B008
) -> ReportResponse:
    async with open_forum(request) as forum:
        await require_staff(forum.session, user_id)
        report = await forum.reports.delete_report(report_id)
        await forum.session.commit()
        return ReportResponse.from_row(report)
