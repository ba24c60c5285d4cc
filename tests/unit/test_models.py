"""Tests for SQLAlchemy models: defaults, constraints, helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from campusboard.core.errors import ValidationError
from campusboard.forum.models import (
    Campus,
    Comment,
    Reaction,
    ReactionKind,
    ResolutionStatus,
    TargetKind,
    Thread,
    ThreadAlias,
    ThreadCategory,
    User,
)
from campusboard.forum.paging import Page
from tests.fixtures.seed import make_department

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def _thread(**overrides) -> Thread:
    fields = {
        "owner_id": 1,
        "category": ThreadCategory.ANONYMOUS,
        "title": "t",
        "body": "b",
    }
    fields.update(overrides)
    return Thread(**fields)


class TestDefaults:
    async def test_thread_defaults(self, db_session: AsyncSession):
        thread = _thread()
        db_session.add(thread)
        await db_session.flush()

        assert thread.id is not None
        assert thread.campus is Campus.UNSPECIFIED
        assert thread.resolution is ResolutionStatus.UNRESOLVED
        assert (thread.like_count, thread.dislike_count, thread.favorite_count) == (0, 0, 0)
        assert thread.value == 0
        assert thread.rating is None
        assert thread.is_deleted is False
        assert thread.created_at is not None

    async def test_user_staff_flag(self, db_session: AsyncSession):
        plain = User()
        admin = User(is_community_admin=True)
        db_session.add_all([plain, admin])
        await db_session.flush()
        assert plain.is_staff is False
        assert admin.is_staff is True

    async def test_comment_top_level(self, db_session: AsyncSession):
        thread = _thread()
        db_session.add(thread)
        await db_session.flush()
        top = Comment(thread_id=thread.id, author_id=2, display_name="Anon0")
        db_session.add(top)
        await db_session.flush()
        reply = Comment(
            thread_id=thread.id, author_id=3, display_name="Anon1", thread_root=top.id
        )
        db_session.add(reply)
        await db_session.flush()
        assert top.is_top_level is True
        assert reply.is_top_level is False

    async def test_enum_stored_by_value(self, db_session: AsyncSession):
        db_session.add(_thread(category=ThreadCategory.GENERAL))
        await db_session.flush()
        raw = await db_session.execute(text("SELECT category FROM threads"))
        assert raw.scalar_one() == "general"


class TestConstraints:
    async def test_service_thread_requires_department(self, db_session: AsyncSession):
        db_session.add(_thread(category=ThreadCategory.CAMPUS_SERVICE))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_anonymous_thread_rejects_department(self, db_session: AsyncSession):
        department = await make_department(db_session)
        db_session.add(_thread(department_id=department.id))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_service_thread_with_department(self, db_session: AsyncSession):
        department = await make_department(db_session)
        thread = _thread(category=ThreadCategory.CAMPUS_SERVICE, department_id=department.id)
        db_session.add(thread)
        await db_session.flush()
        assert thread.department_id == department.id

    async def test_rating_only_when_resolved(self, db_session: AsyncSession):
        db_session.add(_thread(rating=5))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_resolved_needs_rating_in_range(self, db_session: AsyncSession):
        db_session.add(_thread(resolution=ResolutionStatus.RESOLVED, rating=11))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_counters_never_negative(self, db_session: AsyncSession):
        db_session.add(_thread(like_count=-1))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_reaction_unique_per_user_target_kind(self, db_session: AsyncSession):
        for _ in range(2):
            db_session.add(
                Reaction(
                    user_id=1,
                    target_kind=TargetKind.THREAD,
                    target_id=1,
                    kind=ReactionKind.LIKE,
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_alias_name_unique_per_thread(self, db_session: AsyncSession):
        thread = _thread()
        db_session.add(thread)
        await db_session.flush()
        db_session.add_all(
            [
                ThreadAlias(thread_id=thread.id, user_id=2, name="Anon0"),
                ThreadAlias(thread_id=thread.id, user_id=3, name="Anon0"),
            ]
        )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_foreign_keys_enforced(self, db_session: AsyncSession):
        db_session.add(Comment(thread_id=999, author_id=1, display_name="Anon0"))
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestPage:
    def test_offset_and_limit(self):
        page = Page(3, 10)
        assert page.offset == 20
        assert page.limit == 10

    def test_rejects_zero_number(self):
        with pytest.raises(ValidationError):
            Page(0, 10)

    def test_rejects_zero_size(self):
        with pytest.raises(ValidationError):
            Page(1, 0)

    def test_clamp_caps_size(self):
        assert Page.clamp(2, 500, 100) == Page(2, 100)
