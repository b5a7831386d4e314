"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the HTTP surface with the FastAPI TestClient against the
in-memory SQLite engine.

These tests verify:
- Auth guards (missing token, member vs. admin)
- Domain errors rendered as ``{"error": {"code", "message", "details"}}``
- The post → quest progress → claim flow end to end
"""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from conftest import get_user_row, make_user
from lorehub.api.deps import create_access_token, get_config, get_dispatcher, get_engine
from lorehub.api.main import app
from lorehub.config import LorehubConfig
from lorehub.constants import Role
from lorehub.engine.dispatch import build_default_dispatcher
from lorehub.engine.quests import DEFAULT_QUEST_CATALOG


@pytest.fixture
def client(seeded_engine):
    """TestClient wired to the seeded test database (lifespan not started)."""
    cfg = LorehubConfig(community_name="Test", api_port=8000)
    dispatcher = build_default_dispatcher(seeded_engine, DEFAULT_QUEST_CATALOG)
    app.dependency_overrides[get_engine] = lambda: seeded_engine
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def member(seeded_engine) -> str:
    return make_user(seeded_engine)


@pytest.fixture
def member_token(member) -> str:
    return create_access_token(member)


@pytest.fixture
def admin_token(seeded_engine) -> str:
    return create_access_token(make_user(seeded_engine, role=Role.ADMIN), Role.ADMIN)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ===========================================================================
# Health & auth
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuth:
    def test_missing_token(self, client):
        resp = client.get("/api/quests")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing token"

    def test_garbage_token(self, client):
        resp = client.get("/api/quests", headers=_auth("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_me(self, client, member, member_token):
        resp = client.get("/api/users/me", headers=_auth(member_token))
        assert resp.status_code == 200
        assert resp.json()["id"] == member
        assert resp.json()["coins"] == 0


@pytest.mark.parametrize("path,body", [
    ("/api/admin/quests/sweep", None),
    (f"/api/admin/achievements/{uuid.uuid4()}/grant", {"user_id": str(uuid.uuid4())}),
])
class TestAdminAuthGuards:
    def test_member_forbidden(self, client, member_token, path, body):
        resp = client.post(path, json=body, headers=_auth(member_token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AuthorizationError"

    def test_no_token(self, client, path, body):
        resp = client.post(path, json=body)
        assert resp.status_code == 401


# ===========================================================================
# Quests
# ===========================================================================
class TestQuestRoutes:
    def test_list_generates_daily_set(self, client, member_token):
        resp = client.get("/api/quests", headers=_auth(member_token))
        assert resp.status_code == 200
        quests = resp.json()["quests"]
        assert [q["type"] for q in quests] == ["create_post", "comment_post", "like_post"]
        assert all(q["is_expired"] is False for q in quests)

    def test_claim_incomplete(self, client, member_token):
        quests = client.get("/api/quests", headers=_auth(member_token)).json()["quests"]
        resp = client.post(f"/api/quests/{quests[0]['id']}/claim", headers=_auth(member_token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "NotCompleted"

    def test_claim_unknown(self, client, member_token):
        resp = client.post(f"/api/quests/{uuid.uuid4()}/claim", headers=_auth(member_token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "QuestNotFound"

    def test_post_completes_quest_and_claim_pays(self, client, seeded_engine, member,
                                                 member_token):
        client.get("/api/quests", headers=_auth(member_token))
        resp = client.post(
            "/api/posts",
            json={"title": "Tides", "content": "The moon pulls."},
            headers=_auth(member_token),
        )
        assert resp.status_code == 201

        quests = client.get("/api/quests", headers=_auth(member_token)).json()["quests"]
        create = next(q for q in quests if q["type"] == "create_post")
        assert create["is_completed"] is True

        # First Post achievement (10) was paid by the dispatcher
        assert get_user_row(seeded_engine, member).coins == 10

        resp = client.post(f"/api/quests/{create['id']}/claim", headers=_auth(member_token))
        assert resp.status_code == 200
        assert resp.json()["coins_awarded"] == 50
        assert resp.json()["new_balance"] == 60

        again = client.post(f"/api/quests/{create['id']}/claim", headers=_auth(member_token))
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "AlreadyClaimed"


# ===========================================================================
# Achievements
# ===========================================================================
class TestAchievementRoutes:
    def test_catalog_is_public(self, client):
        resp = client.get("/api/achievements")
        assert resp.status_code == 200
        assert len(resp.json()["achievements"]) == 5

    def test_my_progress(self, client, member_token):
        resp = client.get("/api/achievements/me", headers=_auth(member_token))
        assert resp.status_code == 200
        rows = resp.json()["achievements"]
        assert len(rows) == 5
        assert all(r["is_unlocked"] is False for r in rows)


# ===========================================================================
# Shop & profile
# ===========================================================================
class TestShopRoutes:
    def _item_id(self, client, name: str) -> str:
        items = client.get("/api/shop/items").json()["items"]
        return next(i["id"] for i in items if i["name"] == name)

    def test_insufficient_coins(self, client, member_token):
        item_id = self._item_id(client, "Dark Theme")
        resp = client.post(
            "/api/shop/purchase", json={"item_id": item_id}, headers=_auth(member_token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "InsufficientCoins"

    def test_purchase_and_activate(self, client, seeded_engine):
        token = create_access_token(make_user(seeded_engine, coins=120))
        item_id = self._item_id(client, "Gold Frame")

        resp = client.post("/api/shop/purchase", json={"item_id": item_id}, headers=_auth(token))
        assert resp.status_code == 201
        assert resp.json()["new_balance"] == 20
        assert resp.json()["inventory_item"]["is_active"] is False

        resp = client.post(f"/api/shop/items/{item_id}/activate", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["inventory_item"]["is_active"] is True

        me = client.get("/api/users/me", headers=_auth(token)).json()
        assert me["selected_frame"] == item_id

    def test_select_unowned_theme(self, client, member_token):
        item_id = self._item_id(client, "Ocean Theme")
        resp = client.patch(
            "/api/users/me", json={"selected_theme": item_id}, headers=_auth(member_token),
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ItemNotInInventory"


# ===========================================================================
# Admin
# ===========================================================================
class TestAdminRoutes:
    def test_sweep(self, client, admin_token):
        resp = client.post("/api/admin/quests/sweep", headers=_auth(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"deleted": 0}

    def test_grant_achievement(self, client, seeded_engine, member, admin_token):
        rows = client.get("/api/achievements").json()["achievements"]
        popular = next(r["id"] for r in rows if r["title"] == "Popular")
        resp = client.post(
            f"/api/admin/achievements/{popular}/grant",
            json={"user_id": member},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["new_balance"] == 100
        assert get_user_row(seeded_engine, member).coins == 100


# ===========================================================================
# Social actions & notifications
# ===========================================================================
class TestSocialRoutes:
    def _post(self, client, token: str) -> str:
        resp = client.post(
            "/api/posts", json={"title": "Orbits", "content": "Kepler."}, headers=_auth(token),
        )
        return resp.json()["id"]

    def test_like_toggles(self, client, seeded_engine, member_token):
        author = create_access_token(make_user(seeded_engine))
        post_id = self._post(client, author)

        first = client.post(f"/api/posts/{post_id}/like", headers=_auth(member_token))
        second = client.post(f"/api/posts/{post_id}/like", headers=_auth(member_token))
        assert first.json() == {"liked": True}
        assert second.json() == {"liked": False}

    def test_delete_someone_elses_post(self, client, seeded_engine, member_token):
        author = create_access_token(make_user(seeded_engine))
        post_id = self._post(client, author)

        resp = client.delete(f"/api/posts/{post_id}", headers=_auth(member_token))
        assert resp.status_code == 403
        assert client.delete(f"/api/posts/{post_id}", headers=_auth(author)).status_code == 200
        gone = client.get(f"/api/posts/{post_id}", headers=_auth(member_token))
        assert gone.status_code == 404

    def test_unfollow_without_follow(self, client, seeded_engine, member_token):
        other = make_user(seeded_engine)
        resp = client.delete(f"/api/users/{other}/follow", headers=_auth(member_token))
        assert resp.status_code == 404

    def test_notifications_read_flow(self, client, member_token):
        self._post(client, member_token)   # unlocks First Post
        count = client.get("/api/users/me/notifications/unread-count",
                           headers=_auth(member_token))
        assert count.json() == {"unread": 1}

        rows = client.get("/api/users/me/notifications", headers=_auth(member_token))
        note = rows.json()["notifications"][0]
        assert note["type"] == "achievement_unlocked"

        resp = client.post(f"/api/users/me/notifications/{note['id']}/read",
                           headers=_auth(member_token))
        assert resp.status_code == 200
        assert client.post("/api/users/me/notifications/read-all",
                           headers=_auth(member_token)).json() == {"marked": 0}
