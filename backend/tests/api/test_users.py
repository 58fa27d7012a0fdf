"""Integration tests for the /users endpoints."""

from __future__ import annotations

import pytest

from ssms.core.permissions import default_permissions_for
from ssms.core.security import create_access_token
from ssms.models.event import Event
from ssms.models.user import User
from tests.conftest import (
    auth_headers,
    create_event,
    create_stakeholder,
    create_user,
)


@pytest.fixture
async def users_env(db):
    """Prerequisite data shared by all user tests."""
    admin = await create_user(db, email="admin@test.com", role="admin")
    manager = await create_user(db, email="manager@test.com", role="manager")
    viewer = await create_user(db, email="viewer@test.com", role="viewer")
    return {"admin": admin, "manager": manager, "viewer": viewer}


# -------------------------------------------------------------------
# GET /users/me/stream
# -------------------------------------------------------------------


class TestPrincipalStream:
    async def test_deactivated_user_cannot_subscribe(self, client, db):
        gone = await create_user(db, email="gone@test.com", is_active=False)
        token = create_access_token(gone.id, gone.role)

        resp = await client.get("/api/v1/users/me/stream", params={"token": token})

        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthenticated"

    async def test_deleted_user_cannot_subscribe(self, client, db):
        token = create_access_token("no-such-user", "viewer")

        resp = await client.get("/api/v1/users/me/stream", params={"token": token})

        assert resp.status_code == 401

    async def test_invalid_token(self, client, db):
        resp = await client.get("/api/v1/users/me/stream", params={"token": "garbage"})
        assert resp.status_code == 401


# -------------------------------------------------------------------
# GET /users
# -------------------------------------------------------------------


class TestListUsers:
    async def test_admin_lists_users(self, client, db, users_env):
        resp = await client.get("/api/v1/users", headers=auth_headers(users_env["admin"]))
        assert resp.status_code == 200
        emails = {u["email"] for u in resp.json()}
        assert {"admin@test.com", "viewer@test.com"} <= emails

    async def test_unauthenticated_returns_401(self, client, db, users_env):
        resp = await client.get("/api/v1/users")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthenticated"

    async def test_manager_without_manage_users_denied(self, client, db, users_env):
        resp = await client.get("/api/v1/users", headers=auth_headers(users_env["manager"]))
        assert resp.status_code == 403
        assert "manageUsers" in resp.json()["requirement"]


# -------------------------------------------------------------------
# POST /users
# -------------------------------------------------------------------


class TestCreateUser:
    async def test_admin_creates_viewer_by_default(self, client, db, users_env):
        resp = await client.post(
            "/api/v1/users",
            json={"email": "new@test.com", "password": "123456", "display_name": "New"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 201
        created = await db.get(User, resp.json()["id"])
        assert created.role == "viewer"

    async def test_invalid_email(self, client, db, users_env):
        resp = await client.post(
            "/api/v1/users",
            json={"email": "not-an-email", "password": "123456", "display_name": "New"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid-argument"

    async def test_viewer_denied(self, client, db, users_env):
        resp = await client.post(
            "/api/v1/users",
            json={"email": "new@test.com", "password": "123456", "display_name": "New"},
            headers=auth_headers(users_env["viewer"]),
        )
        assert resp.status_code == 403


# -------------------------------------------------------------------
# GET /users/{id}
# -------------------------------------------------------------------


class TestGetUser:
    async def test_self(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.get(f"/api/v1/users/{viewer.id}", headers=auth_headers(viewer))
        assert resp.status_code == 200
        assert resp.json()["id"] == viewer.id
        assert resp.json()["display_role"] == "Viewer"

    async def test_other_requires_manage_users(self, client, db, users_env):
        resp = await client.get(
            f"/api/v1/users/{users_env['admin'].id}",
            headers=auth_headers(users_env["viewer"]),
        )
        assert resp.status_code == 403

    async def test_not_found(self, client, db, users_env):
        resp = await client.get("/api/v1/users/missing", headers=auth_headers(users_env["admin"]))
        assert resp.status_code == 404
        assert resp.json()["code"] == "not-found"


# -------------------------------------------------------------------
# PUT /users/{id}/role and /active
# -------------------------------------------------------------------


class TestRoleAndStatus:
    async def test_role_change(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.put(
            f"/api/v1/users/{viewer.id}/role",
            json={"role": "member"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "role": "member",
            "permissions": [p.value for p in default_permissions_for("member")],
        }

    async def test_viewer_denied_and_nothing_changes(self, client, db, users_env):
        viewer, manager = users_env["viewer"], users_env["manager"]
        resp = await client.put(
            f"/api/v1/users/{manager.id}/role",
            json={"role": "viewer"},
            headers=auth_headers(viewer),
        )
        assert resp.status_code == 403
        assert "manageUsers" in resp.json()["requirement"]
        await db.refresh(manager)
        assert manager.role == "manager"

    async def test_self_role_change_forbidden(self, client, db, users_env):
        admin = users_env["admin"]
        resp = await client.put(
            f"/api/v1/users/{admin.id}/role",
            json={"role": "root"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 403
        assert resp.json()["requirement"] == "self-modification-forbidden"

    async def test_invalid_role(self, client, db, users_env):
        resp = await client.put(
            f"/api/v1/users/{users_env['viewer'].id}/role",
            json={"role": "wizard"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 400

    async def test_self_deactivation_forbidden(self, client, db, users_env):
        admin = users_env["admin"]
        resp = await client.put(
            f"/api/v1/users/{admin.id}/active",
            json={"is_active": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 403
        assert resp.json()["requirement"] == "self-modification-forbidden"

    async def test_deactivate(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.put(
            f"/api/v1/users/{viewer.id}/active",
            json={"is_active": False},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.json() == {"is_active": False}
        # Existing tokens stop working at once
        resp = await client.get("/api/v1/auth/me", headers=auth_headers(viewer))
        assert resp.status_code == 401

    async def test_non_boolean_rejected(self, client, db, users_env):
        resp = await client.put(
            f"/api/v1/users/{users_env['viewer'].id}/active",
            json={"is_active": "nope"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 400


# -------------------------------------------------------------------
# PATCH /users/{id}
# -------------------------------------------------------------------


class TestUpdateUser:
    async def test_self_display_name(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.patch(
            f"/api/v1/users/{viewer.id}",
            json={"display_name": "Vera"},
            headers=auth_headers(viewer),
        )
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Vera"

    async def test_self_cannot_escalate(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.patch(
            f"/api/v1/users/{viewer.id}",
            json={"permissions": ["root"]},
            headers=auth_headers(viewer),
        )
        assert resp.status_code == 403

    async def test_admin_updates_other(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.patch(
            f"/api/v1/users/{viewer.id}",
            json={"role": "manager", "display_name": "Promoted"},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "manager"
        assert body["display_name"] == "Promoted"

    async def test_blank_display_name(self, client, db, users_env):
        viewer = users_env["viewer"]
        resp = await client.patch(
            f"/api/v1/users/{viewer.id}",
            json={"display_name": "   "},
            headers=auth_headers(viewer),
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("role", ["", "  ", "wizard"])
    async def test_invalid_role_keeps_custom_permissions(self, client, db, users_env, role):
        member = await create_user(
            db, email="custom@test.com", role="member", permissions=["viewEvent", "viewReports"]
        )
        resp = await client.patch(
            f"/api/v1/users/{member.id}",
            json={"role": role},
            headers=auth_headers(users_env["admin"]),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid-argument"
        await db.refresh(member)
        assert member.role == "member"
        assert member.permissions == ["viewEvent", "viewReports"]


# -------------------------------------------------------------------
# DELETE /users/{id}
# -------------------------------------------------------------------


class TestDeleteUser:
    async def test_cascades(self, client, db, users_env):
        manager = users_env["manager"]
        event = await create_event(db, owner=manager)
        stakeholder = await create_stakeholder(
            db, linked_user_id=manager.id, invite_status="accepted"
        )

        resp = await client.delete(
            f"/api/v1/users/{manager.id}", headers=auth_headers(users_env["admin"])
        )

        assert resp.status_code == 204
        assert await db.get(User, manager.id) is None
        event = await db.get(Event, event.id)
        await db.refresh(event)
        assert event.owner_id is None
        assert event.owner_name == "Deleted User"
        await db.refresh(stakeholder)
        assert stakeholder.linked_user_id is None

    async def test_self_delete_forbidden(self, client, db, users_env):
        admin = users_env["admin"]
        resp = await client.delete(f"/api/v1/users/{admin.id}", headers=auth_headers(admin))
        assert resp.status_code == 403
