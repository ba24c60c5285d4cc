"""Tests for the report ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from campusboard.core.errors import NotFoundError
from campusboard.forum.models import TargetKind
from tests.fixtures.seed import make_thread

if TYPE_CHECKING:
    from campusboard.forum.service import Forum


class TestAddReport:
    async def test_thread_report(self, forum: Forum):
        thread = await make_thread(forum, 1)
        report = await forum.reports.add_report(2, TargetKind.THREAD, thread.id, "spam")
        assert report.thread_id == thread.id
        assert report.solved is False
        assert report.is_deleted is False

    async def test_comment_report_resolves_thread(self, forum: Forum):
        thread = await make_thread(forum, 1)
        comment = await forum.comments.add_top_level_comment(thread.id, 2, "x")
        report = await forum.reports.add_report(3, TargetKind.COMMENT, comment.id, "rude")
        assert report.thread_id == thread.id

    async def test_missing_target(self, forum: Forum):
        with pytest.raises(NotFoundError):
            await forum.reports.add_report(2, TargetKind.COMMENT, 999, "?")

    async def test_deleted_thread(self, forum: Forum):
        thread = await make_thread(forum, 1)
        await forum.threads.delete_thread(1, thread.id)
        with pytest.raises(NotFoundError):
            await forum.reports.add_report(2, TargetKind.THREAD, thread.id, "late")


class TestReview:
    async def test_list_newest_first_and_filtered(self, forum: Forum):
        thread = await make_thread(forum, 1)
        comment = await forum.comments.add_top_level_comment(thread.id, 2, "x")
        first = await forum.reports.add_report(2, TargetKind.THREAD, thread.id, "a")
        second = await forum.reports.add_report(3, TargetKind.COMMENT, comment.id, "b")

        assert [r.id for r in await forum.reports.list_reports()] == [second.id, first.id]
        only_threads = await forum.reports.list_reports(TargetKind.THREAD)
        assert [r.id for r in only_threads] == [first.id]

    async def test_solve(self, forum: Forum):
        thread = await make_thread(forum, 1)
        a = await forum.reports.add_report(2, TargetKind.THREAD, thread.id, "a")
        b = await forum.reports.add_report(3, TargetKind.THREAD, thread.id, "b")
        assert await forum.reports.solve_reports(TargetKind.THREAD, thread.id) == 2
        assert a.solved and b.solved
        assert await forum.reports.solve_reports(TargetKind.THREAD, thread.id) == 0

    async def test_delete_report(self, forum: Forum):
        thread = await make_thread(forum, 1)
        report = await forum.reports.add_report(2, TargetKind.THREAD, thread.id, "a")
        await forum.reports.delete_report(report.id)
        assert report.is_deleted
        # Deleted reports stay visible to reviewers.
        assert [r.id for r in await forum.reports.list_reports()] == [report.id]
        with pytest.raises(NotFoundError):
            await forum.reports.delete_report(report.id)

    async def test_delete_missing(self, forum: Forum):
        with pytest.raises(NotFoundError):
            await forum.reports.delete_report(42)
