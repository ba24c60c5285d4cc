"""Tests for the REST API: routes, auth, and error mapping."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from campusboard.api.auth import create_token
from campusboard.api.errors import _handle, status_for
from campusboard.config.schema import CampusBoardConfig, DatabaseConfig
from campusboard.core.errors import (
    AlreadyActiveError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from campusboard.integrations.images import LocalImageStore
from tests.fixtures.seed import make_department, make_user

if TYPE_CHECKING:
    from pathlib import Path

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

SECRET = "test-secret"


# ── Helpers ────────────────────────────────────────────────────


def _make_app(factory: async_sessionmaker[AsyncSession], tmp_path: Path) -> FastAPI:
    """App wired to the test database, bypassing the lifespan handler."""
    from campusboard.api.app import create_app

    config = CampusBoardConfig(database=DatabaseConfig(url="sqlite+aiosqlite://"))
    config.api.jwt_secret = SECRET
    app = create_app(
        config,
        images=LocalImageStore(tmp_path / "images"),
        notifier=AsyncMock(),
    )
    app.state.db_factory = factory
    return app


def _auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(user_id, SECRET)}"}


async def _seed_user(factory: async_sessionmaker[AsyncSession], **rights: bool) -> int:
    async with factory() as session:
        user = await make_user(session, **rights)
        await session.commit()
        return user.id


async def _seed_department(factory: async_sessionmaker[AsyncSession]) -> int:
    async with factory() as session:
        department = await make_department(session)
        await session.commit()
        return department.id


def _post_thread(client: TestClient, user_id: int, **fields: object) -> dict:
    body = {"category": "anonymous", "title": "Library hours?", "body": "Open late?"}
    body.update(fields)
    resp = client.post("/api/threads", json=body, headers=_auth(user_id))
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Health ─────────────────────────────────────────────────────


class TestHealth:
    async def test_basic(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_detailed(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        data = client.get("/api/health/detailed").json()
        assert data["status"] == "ok"
        assert data["components"]["database"] == {"status": "ok"}
        assert data["components"]["images"] == {"status": "ok"}
        assert data["version"] == "0.1.0"


# ── Auth ───────────────────────────────────────────────────────


class TestAuth:
    async def test_missing_header(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        resp = client.post("/api/threads", json={"category": "anonymous", "title": "t", "body": "b"})
        assert resp.status_code == 401

    async def test_bad_signature(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        headers = {"Authorization": f"Bearer {create_token(1, 'other-secret')}"}
        assert client.get("/api/unread/counts", headers=headers).status_code == 401

    async def test_expired(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        headers = {"Authorization": f"Bearer {create_token(1, SECRET, expiry_hours=-1)}"}
        resp = client.get("/api/unread/counts", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token expired"

    async def test_anonymous_reads_allowed(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        assert client.get("/api/threads").json() == {"threads": [], "total": 0}


# ── Threads ────────────────────────────────────────────────────


class TestThreads:
    async def test_create_and_view(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        image = base64.b64encode(b"\x89PNG").decode()
        created = _post_thread(client, 1, images=[image])
        assert created["owner_id"] == 1
        assert created["is_owner"] is True
        assert len(created["image_urls"]) == 1

        resp = client.get(f"/api/threads/{created['thread_id']}", headers=_auth(2))
        data = resp.json()
        assert data["is_owner"] is False
        assert data["resolution"] == "unresolved"

        visited = client.get("/api/threads/visited", headers=_auth(2)).json()
        assert [t["thread_id"] for t in visited["threads"]] == [created["thread_id"]]

    async def test_bad_image_encoding(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        body = {"category": "anonymous", "title": "t", "body": "b", "images": ["***"]}
        resp = client.post("/api/threads", json=body, headers=_auth(1))
        assert resp.status_code == 422

    async def test_service_thread_needs_department(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        body = {"category": "campus_service", "title": "t", "body": "b"}
        resp = client.post("/api/threads", json=body, headers=_auth(1))
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    async def test_missing_thread(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        resp = client.get("/api/threads/99")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "thread not found: 99", "error": "NotFoundError"}

    async def test_list_and_mine(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        _post_thread(client, 1, title="Dining hall menu")
        _post_thread(client, 2, title="Library hours")

        assert client.get("/api/threads").json()["total"] == 2
        found = client.get("/api/threads", params={"search": "dining"}).json()
        assert [t["title"] for t in found["threads"]] == ["Dining hall menu"]
        mine = client.get("/api/threads/mine", headers=_auth(2)).json()
        assert [t["owner_id"] for t in mine["threads"]] == [2]

    async def test_delete_and_recover(self, db_factory, tmp_path):
        admin = await _seed_user(db_factory, is_super=True)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]

        assert client.delete(f"/api/threads/{thread_id}", headers=_auth(2)).status_code == 403
        resp = client.delete(f"/api/threads/{thread_id}", headers=_auth(1))
        assert resp.status_code == 200
        assert client.get(f"/api/threads/{thread_id}").status_code == 404

        listed = client.get(
            "/api/threads", params={"include_deleted": "true"}, headers=_auth(admin)
        ).json()
        assert listed["threads"][0]["is_deleted"] is True

        resp = client.post(f"/api/threads/{thread_id}/recover", headers=_auth(admin))
        assert resp.status_code == 200
        assert resp.json()["is_deleted"] is False

    async def test_include_deleted_is_staff_only(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        params = {"include_deleted": "true"}
        assert client.get("/api/threads", params=params).status_code == 401
        assert client.get("/api/threads", params=params, headers=_auth(5)).status_code == 403

    async def test_resolution_flow(self, db_factory, tmp_path):
        admin = await _seed_user(db_factory, is_super=True)
        department_id = await _seed_department(db_factory)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(
            client, 1, category="campus_service", department_id=department_id
        )["thread_id"]
        base = f"/api/threads/{thread_id}"

        resp = client.post(f"{base}/staff-replies", json={"body": "Open till 10"}, headers=_auth(admin))
        assert resp.status_code == 201
        assert [r["body"] for r in client.get(f"{base}/staff-replies").json()] == ["Open till 10"]
        counts = client.get("/api/unread/counts", headers=_auth(1)).json()
        assert counts["counts"]["staff_reply"] == 1

        assert client.post(f"{base}/rating", json={"rating": 11}, headers=_auth(1)).status_code == 422
        assert client.post(f"{base}/rating", json={"rating": 8}, headers=_auth(2)).status_code == 403
        resp = client.post(f"{base}/rating", json={"rating": 8}, headers=_auth(1))
        assert resp.json() == {"thread_id": thread_id, "resolution": "resolved"}

        resp = client.post(f"{base}/resolution/toggle", headers=_auth(admin))
        assert resp.status_code == 409

    async def test_admin_edits(self, db_factory, tmp_path):
        moderator = await _seed_user(db_factory, is_community_admin=True)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        base = f"/api/threads/{thread_id}"

        resp = client.put(f"{base}/category", json={"category": "general"}, headers=_auth(moderator))
        assert resp.json()["category"] == "general"
        resp = client.put(f"{base}/value", json={"value": 3}, headers=_auth(moderator))
        assert resp.json()["value"] == 3
        assert client.put(f"{base}/value", json={"value": 3}, headers=_auth(1)).status_code == 403


# ── Comments ───────────────────────────────────────────────────


class TestComments:
    async def test_comment_tree(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]

        resp = client.post(
            f"/api/threads/{thread_id}/comments", json={"body": "Till 10"}, headers=_auth(2)
        )
        assert resp.status_code == 201
        top = resp.json()
        assert top["display_name"] == "Anon0"

        resp = client.post(
            f"/api/comments/{top['comment_id']}/replies", json={"body": "Thanks"}, headers=_auth(1)
        )
        reply = resp.json()
        assert reply["display_name"] == "Owner"
        assert reply["reply_to_name"] == "Anon0"

        listed = client.get(f"/api/threads/{thread_id}/comments").json()
        assert [c["comment_id"] for c in listed] == [top["comment_id"]]
        assert listed[0]["reply_count"] == 1
        assert [r["comment_id"] for r in listed[0]["replies"]] == [reply["comment_id"]]

        short = client.get(f"/api/threads/{thread_id}/comments/short").json()
        assert len(short) == 1
        replies = client.get(f"/api/comments/{top['comment_id']}/replies").json()
        assert [r["body"] for r in replies] == ["Thanks"]

    async def test_delete_cascades(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        top = client.post(
            f"/api/threads/{thread_id}/comments", json={"body": "a"}, headers=_auth(2)
        ).json()
        reply = client.post(
            f"/api/comments/{top['comment_id']}/replies", json={"body": "b"}, headers=_auth(3)
        ).json()

        assert client.delete(f"/api/comments/{top['comment_id']}", headers=_auth(3)).status_code == 403
        resp = client.delete(f"/api/comments/{top['comment_id']}", headers=_auth(2))
        assert sorted(resp.json()["deleted"]) == sorted([top["comment_id"], reply["comment_id"]])
        assert client.get(f"/api/comments/{reply['comment_id']}").status_code == 404

    async def test_comment_on_missing_thread(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        resp = client.post("/api/threads/7/comments", json={"body": "x"}, headers=_auth(1))
        assert resp.status_code == 404


# ── Reactions ──────────────────────────────────────────────────


class TestReactions:
    async def test_toggle_lifecycle(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        url = f"/api/threads/{thread_id}/reactions/like"

        resp = client.put(url, headers=_auth(2))
        assert resp.json() == {
            "target": "thread",
            "target_id": thread_id,
            "kind": "like",
            "active": True,
            "count": 1,
        }
        again = client.put(url, headers=_auth(2))
        assert again.status_code == 409
        assert again.json()["error"] == "AlreadyActiveError"

        assert client.delete(url, headers=_auth(2)).json()["count"] == 0
        assert client.delete(url, headers=_auth(2)).status_code == 409

    async def test_unknown_kind(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        resp = client.put("/api/threads/1/reactions/love", headers=_auth(2))
        assert resp.status_code == 422

    async def test_favorite_on_comment_rejected(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        comment = client.post(
            f"/api/threads/{thread_id}/comments", json={"body": "a"}, headers=_auth(2)
        ).json()
        resp = client.put(
            f"/api/comments/{comment['comment_id']}/reactions/favorite", headers=_auth(3)
        )
        assert resp.status_code == 422

    async def test_favorites_listing(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        client.put(f"/api/threads/{thread_id}/reactions/favorite", headers=_auth(2))
        favorites = client.get("/api/threads/favorites", headers=_auth(2)).json()
        assert [t["thread_id"] for t in favorites["threads"]] == [thread_id]
        assert favorites["threads"][0]["is_favorite"] is True


# ── Unread ─────────────────────────────────────────────────────


class TestUnread:
    async def test_counts_listing_and_marking(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        comment = client.post(
            f"/api/threads/{thread_id}/comments", json={"body": "a"}, headers=_auth(2)
        ).json()

        counts = client.get("/api/unread/counts", headers=_auth(1)).json()
        assert counts == {
            "counts": {"comment": 1, "staff_reply": 0, "announcement": 0},
            "total": 1,
        }
        entries = client.get("/api/unread/comment", headers=_auth(1)).json()
        assert [(e["source_id"], e["is_read"]) for e in entries] == [
            (comment["comment_id"], False)
        ]

        resp = client.post(f"/api/unread/comment/{comment['comment_id']}/read", headers=_auth(1))
        assert resp.json() == {"marked": 1}
        assert client.get("/api/unread/counts", headers=_auth(1)).json()["total"] == 0

    async def test_read_all(self, db_factory, tmp_path):
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]
        for author in (2, 3):
            client.post(
                f"/api/threads/{thread_id}/comments", json={"body": "a"}, headers=_auth(author)
            )
        resp = client.post("/api/unread/read-all", params={"kind": "comment"}, headers=_auth(1))
        assert resp.json() == {"marked": 2}


# ── Reports ────────────────────────────────────────────────────


class TestReports:
    async def test_file_and_review(self, db_factory, tmp_path):
        staff = await _seed_user(db_factory, is_community_admin=True)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        thread_id = _post_thread(client, 1)["thread_id"]

        report = {"target_kind": "thread", "target_id": thread_id, "reason": "spam"}
        resp = client.post("/api/reports", json=report, headers=_auth(2))
        assert resp.status_code == 201
        report_id = resp.json()["report_id"]

        assert client.get("/api/reports", headers=_auth(2)).status_code == 403
        listed = client.get("/api/reports", headers=_auth(staff)).json()
        assert [r["report_id"] for r in listed] == [report_id]

        solve = {"target_kind": "thread", "target_id": thread_id}
        assert client.post("/api/reports/solve", json=solve, headers=_auth(staff)).json() == {
            "solved": 1
        }
        resp = client.delete(f"/api/reports/{report_id}", headers=_auth(staff))
        assert resp.json()["is_deleted"] is True


# ── Announcements ──────────────────────────────────────────────


class TestAnnouncements:
    async def test_publish_and_read(self, db_factory, tmp_path):
        admin = await _seed_user(db_factory, is_super=True)
        student = await _seed_user(db_factory)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)
        payload = {"sender": "Registry", "title": "Exams", "body": "Next week"}

        assert client.post("/api/announcements", json=payload, headers=_auth(student)).status_code == 403
        resp = client.post("/api/announcements", json=payload, headers=_auth(admin))
        assert resp.status_code == 201
        assert resp.json()["recipients"] == 1
        announcement_id = resp.json()["announcement"]["announcement_id"]

        counts = client.get("/api/unread/counts", headers=_auth(student)).json()
        assert counts["counts"]["announcement"] == 1
        resp = client.get(f"/api/announcements/{announcement_id}", headers=_auth(student))
        assert resp.json()["title"] == "Exams"
        counts = client.get("/api/unread/counts", headers=_auth(student)).json()
        assert counts["counts"]["announcement"] == 0

        assert client.get("/api/announcements").json()["total"] == 1


# ── Topics ─────────────────────────────────────────────────────


class TestTopics:
    async def test_create_search_hot(self, db_factory, tmp_path):
        admin = await _seed_user(db_factory, is_super=True)
        client = TestClient(_make_app(db_factory, tmp_path), raise_server_exceptions=False)

        assert client.post("/api/topics", json={"name": "food"}, headers=_auth(3)).status_code == 403
        resp = client.post("/api/topics", json={"name": "food"}, headers=_auth(admin))
        topic_id = resp.json()["topic_id"]
        _post_thread(client, 1, topic_id=topic_id)

        assert [t["name"] for t in client.get("/api/topics", params={"name": "fo"}).json()] == ["food"]
        hot = client.get("/api/topics/hot").json()
        assert hot == [{"topic_id": topic_id, "name": "food", "activity": 1}]


# ── Error mapping ──────────────────────────────────────────────


class TestStatusMapping:
    def test_statuses(self):
        assert status_for(NotFoundError("thread", 1)) == 404
        assert status_for(AlreadyActiveError("like", 1, "thread", 1)) == 409
        assert status_for(ForbiddenError("no")) == 403
        assert status_for(InvalidTransitionError("no")) == 409
        assert status_for(ValidationError("no")) == 422
        assert status_for(StorageError("no")) == 500

    async def test_handler_reraises_foreign_errors(self):
        with pytest.raises(RuntimeError, match="boom"):
            await _handle(MagicMock(), RuntimeError("boom"))

    async def test_handler_renders_campusboard_errors(self):
        resp = await _handle(MagicMock(), ForbiddenError("no"))
        assert resp.status_code == 403
        assert resp.body == b'{"detail":"no","error":"ForbiddenError"}'
