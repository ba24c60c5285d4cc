"""Tests for the unread ledger: notify, counts, listings, acknowledgement."""

from __future__ import annotations

from typing import TYPE_CHECKING

from campusboard.forum.models import UnreadKind
from campusboard.forum.paging import Page

if TYPE_CHECKING:
    from campusboard.forum.service import Forum

COMMENT = UnreadKind.COMMENT
STAFF = UnreadKind.STAFF_REPLY
ANNOUNCEMENT = UnreadKind.ANNOUNCEMENT


class TestCounts:
    async def test_every_kind_present(self, forum: Forum):
        assert await forum.unread.count_unread(1) == {COMMENT: 0, STAFF: 0, ANNOUNCEMENT: 0}

    async def test_duplicates_count_once(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 1, 11)
        await forum.unread.notify(STAFF, 1, 3)
        counts = await forum.unread.count_unread(1)
        assert counts[COMMENT] == 2
        assert counts[STAFF] == 1

    async def test_other_users_not_counted(self, forum: Forum):
        await forum.unread.notify(COMMENT, 2, 10)
        assert (await forum.unread.count_unread(1))[COMMENT] == 0


class TestMarkRead:
    async def test_mark_read_clears_all_duplicates(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 1, 10)
        assert await forum.unread.mark_read(COMMENT, 1, 10) == 2
        assert (await forum.unread.count_unread(1))[COMMENT] == 0

    async def test_mark_read_idempotent(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.mark_read(COMMENT, 1, 10)
        assert await forum.unread.mark_read(COMMENT, 1, 10) == 0

    async def test_mark_read_scoped_to_user_and_kind(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 2, 10)
        await forum.unread.notify(STAFF, 1, 10)
        await forum.unread.mark_read(COMMENT, 1, 10)
        assert (await forum.unread.count_unread(2))[COMMENT] == 1
        assert (await forum.unread.count_unread(1))[STAFF] == 1

    async def test_mark_all_read(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(STAFF, 1, 4)
        assert await forum.unread.mark_all_read(1, COMMENT) == 1
        assert (await forum.unread.count_unread(1))[STAFF] == 1
        assert await forum.unread.mark_all_read(1) == 1
        assert sum((await forum.unread.count_unread(1)).values()) == 0


class TestListing:
    async def test_unread_first_then_newest(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 1, 11)
        await forum.unread.notify(COMMENT, 1, 12)
        await forum.unread.mark_read(COMMENT, 1, 12)

        entries = await forum.unread.list_unread(1, COMMENT, Page(1, 10))
        assert [(e.source_id, e.is_read) for e in entries] == [
            (11, False),
            (10, False),
            (12, True),
        ]

    async def test_grouped_by_source(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 1, 10)
        entries = await forum.unread.list_unread(1, COMMENT, Page(1, 10))
        assert len(entries) == 1
        assert entries[0].kind is COMMENT

    async def test_paged(self, forum: Forum):
        for source in range(5):
            await forum.unread.notify(STAFF, 1, source)
        entries = await forum.unread.list_unread(1, STAFF, Page(2, 2))
        assert [e.source_id for e in entries] == [2, 1]


class TestFanoutAndPurge:
    async def test_fanout(self, forum: Forum):
        assert await forum.unread.fanout_announcement(7, [1, 2, 3]) == 3
        assert (await forum.unread.count_unread(2))[ANNOUNCEMENT] == 1

    async def test_fanout_empty(self, forum: Forum):
        assert await forum.unread.fanout_announcement(7, []) == 0

    async def test_purge_sources(self, forum: Forum):
        await forum.unread.notify(COMMENT, 1, 10)
        await forum.unread.notify(COMMENT, 2, 10)
        await forum.unread.notify(STAFF, 1, 10)
        assert await forum.unread.purge_sources(COMMENT, [10]) == 2
        assert (await forum.unread.count_unread(1))[STAFF] == 1
        assert await forum.unread.purge_sources(COMMENT, []) == 0
