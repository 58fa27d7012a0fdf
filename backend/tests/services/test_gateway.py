"""Tests for the mutating-operation gateway and the user operations it runs."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from ssms.core.errors import (
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from ssms.core.guard import HasPermission
from ssms.core.metrics import operations_total
from ssms.core.permissions import Permission, default_permissions_for
from ssms.models.user import User
from ssms.operations import users as user_ops
from ssms.services.event_bus import QUEUE_SIZE
from ssms.services.gateway import Gateway, Operation
from tests.conftest import create_user


def _listen(bus) -> asyncio.Queue:
    q: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
    bus._subscribers.append(q)
    return q


def _drain(q: asyncio.Queue) -> list[dict]:
    items = []
    while not q.empty():
        items.append(q.get_nowait())
    return items


class _Rename(BaseModel):
    display_name: str


async def _rename_self(ctx, payload: _Rename):
    await ctx.directory.update_profile(ctx.principal.id, display_name=payload.display_name)
    return "renamed"


async def _rename_then_crash(ctx, payload: _Rename):
    await ctx.directory.update_profile(ctx.principal.id, display_name=payload.display_name)
    raise RuntimeError("disk on fire")


async def _rename_then_refuse(ctx, payload: _Rename):
    await ctx.directory.update_profile(ctx.principal.id, display_name=payload.display_name)
    raise InvalidArgumentError("changed my mind")


RENAME = Operation("renameSelf", _rename_self, _Rename)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestPipeline:
    async def test_missing_principal(self, db, bus):
        with pytest.raises(UnauthenticatedError):
            await Gateway(db, bus).perform(None, RENAME, {"display_name": "X"})

    async def test_unknown_principal(self, db, bus):
        with pytest.raises(UnauthenticatedError):
            await Gateway(db, bus).perform("ghost", RENAME, {"display_name": "X"})

    async def test_inactive_principal(self, db, bus):
        user = await create_user(db, role="root", is_active=False)
        with pytest.raises(UnauthenticatedError):
            await Gateway(db, bus).perform(user.id, RENAME, {"display_name": "X"})

    async def test_invalid_payload(self, db, bus):
        user = await create_user(db)
        with pytest.raises(InvalidArgumentError, match="display_name"):
            await Gateway(db, bus).perform(user.id, RENAME, {"wrong": 1})

    async def test_denied_names_requirement(self, db, bus):
        user = await create_user(db, role="viewer")
        op = Operation(
            "needsReports",
            _rename_self,
            _Rename,
            requirements=(HasPermission(Permission.VIEW_REPORTS),),
        )
        with pytest.raises(PermissionDeniedError) as exc_info:
            await Gateway(db, bus).perform(user.id, op, {"display_name": "X"})
        assert exc_info.value.requirement == "viewReports"

    async def test_success_commits_then_publishes(self, db, bus, session_factory):
        user = await create_user(db, display_name="Before")
        q = _listen(bus)

        assert await Gateway(db, bus).perform(user.id, RENAME, {"display_name": "After"}) == "renamed"

        async with session_factory() as other:
            assert (await other.get(User, user.id)).display_name == "After"
        messages = _drain(q)
        assert [m["event"] for m in messages] == ["principal.updated"]
        assert messages[0]["user_id"] == user.id

    async def test_unexpected_error_rolls_back_and_is_opaque(self, db, bus, session_factory):
        user = await create_user(db, display_name="Before")
        q = _listen(bus)
        op = Operation("crash", _rename_then_crash, _Rename)

        with pytest.raises(InternalError) as exc_info:
            await Gateway(db, bus).perform(user.id, op, {"display_name": "After"})

        assert "disk" not in exc_info.value.message
        async with session_factory() as other:
            assert (await other.get(User, user.id)).display_name == "Before"
        assert _drain(q) == []

    async def test_classified_error_rolls_back_and_propagates(self, db, bus, session_factory):
        user = await create_user(db, display_name="Before")
        q = _listen(bus)
        op = Operation("refuse", _rename_then_refuse, _Rename)

        with pytest.raises(InvalidArgumentError, match="changed my mind"):
            await Gateway(db, bus).perform(user.id, op, {"display_name": "After"})

        async with session_factory() as other:
            assert (await other.get(User, user.id)).display_name == "Before"
        assert _drain(q) == []

    async def test_counts_outcomes(self, db, bus):
        user = await create_user(db)
        counter = operations_total.labels(operation="renameSelf", outcome="ok")
        before = counter._value.get()

        await Gateway(db, bus).perform(user.id, RENAME, {"display_name": "Y"})

        assert counter._value.get() == before + 1

    async def test_principal_is_resolved_fresh(self, db, bus):
        user = await create_user(db, role="viewer")
        gateway = Gateway(db, bus)
        with pytest.raises(PermissionDeniedError):
            await gateway.perform(user.id, user_ops.LIST_USERS)

        await db.refresh(user)
        user.role = "admin"
        user.permissions = [p.value for p in default_permissions_for("admin")]
        await db.commit()

        assert len(await gateway.perform(user.id, user_ops.LIST_USERS)) == 1


# ---------------------------------------------------------------------------
# User operations
# ---------------------------------------------------------------------------


class TestUserOperations:
    async def test_viewer_cannot_change_roles(self, db, bus):
        viewer = await create_user(db, email="v@test.com", role="viewer")
        target = await create_user(db, email="t@test.com", role="member")

        with pytest.raises(PermissionDeniedError) as exc_info:
            await Gateway(db, bus).perform(
                viewer.id, user_ops.UPDATE_USER_ROLE, {"user_id": target.id, "role": "admin"}
            )

        assert "manageUsers" in exc_info.value.requirement
        await db.refresh(viewer)
        await db.refresh(target)
        assert viewer.role == "viewer"
        assert target.role == "member"

    @pytest.mark.parametrize(
        "operation, payload",
        [
            (user_ops.UPDATE_USER_ROLE, {"role": "viewer"}),
            (user_ops.SET_USER_ACTIVE, {"is_active": False}),
            (user_ops.DELETE_USER, {}),
        ],
    )
    async def test_root_cannot_target_self(self, db, bus, operation, payload):
        root = await create_user(db, role="root")

        with pytest.raises(PermissionDeniedError) as exc_info:
            await Gateway(db, bus).perform(root.id, operation, {"user_id": root.id, **payload})

        assert exc_info.value.requirement == "self-modification-forbidden"
        await db.refresh(root)
        assert root.role == "root"
        assert root.is_active is True

    async def test_role_change_applies_defaults(self, db, bus):
        admin = await create_user(db, email="a@test.com", role="admin")
        target = await create_user(db, email="t@test.com", role="viewer")

        result = await Gateway(db, bus).perform(
            admin.id, user_ops.UPDATE_USER_ROLE, {"user_id": target.id, "role": "manager"}
        )

        assert result["role"] == "manager"
        assert result["permissions"] == [p.value for p in default_permissions_for("manager")]

    async def test_unknown_role_is_invalid_argument(self, db, bus):
        admin = await create_user(db, email="a@test.com", role="admin")
        target = await create_user(db, email="t@test.com")
        with pytest.raises(InvalidArgumentError, match="Invalid role"):
            await Gateway(db, bus).perform(
                admin.id, user_ops.UPDATE_USER_ROLE, {"user_id": target.id, "role": "king"}
            )

    async def test_unknown_target(self, db, bus):
        admin = await create_user(db, role="admin")
        with pytest.raises(NotFoundError):
            await Gateway(db, bus).perform(
                admin.id, user_ops.SET_USER_ACTIVE, {"user_id": "ghost", "is_active": False}
            )

    async def test_create_user_without_role_is_viewer(self, db, bus):
        admin = await create_user(db, role="admin")
        result = await Gateway(db, bus).perform(
            admin.id,
            user_ops.CREATE_USER,
            {"email": "new@test.com", "password": "123456", "display_name": "New"},
        )
        created = await db.get(User, result["id"])
        assert created.role == "viewer"
        assert created.permissions == [p.value for p in default_permissions_for("viewer")]

    async def test_create_user_short_password(self, db, bus):
        admin = await create_user(db, role="admin")
        with pytest.raises(InvalidArgumentError):
            await Gateway(db, bus).perform(
                admin.id,
                user_ops.CREATE_USER,
                {"email": "new@test.com", "password": "123", "display_name": "New"},
            )

    async def test_self_may_read_own_record(self, db, bus):
        viewer = await create_user(db)
        result = await Gateway(db, bus).perform(
            viewer.id, user_ops.GET_USER, {"user_id": viewer.id}
        )
        assert result["email"] == viewer.email

    async def test_viewer_cannot_read_others(self, db, bus):
        viewer = await create_user(db, email="v@test.com")
        other = await create_user(db, email="o@test.com")
        with pytest.raises(PermissionDeniedError):
            await Gateway(db, bus).perform(viewer.id, user_ops.GET_USER, {"user_id": other.id})

    async def test_self_profile_update_allowed(self, db, bus):
        viewer = await create_user(db)
        result = await Gateway(db, bus).perform(
            viewer.id, user_ops.UPDATE_USER, {"user_id": viewer.id, "display_name": "Renamed"}
        )
        assert result["display_name"] == "Renamed"

    async def test_self_role_escalation_via_update_rejected(self, db, bus):
        viewer = await create_user(db)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await Gateway(db, bus).perform(
                viewer.id, user_ops.UPDATE_USER, {"user_id": viewer.id, "role": "root"}
            )
        assert exc_info.value.requirement == "self-modification-forbidden"
        await db.refresh(viewer)
        assert viewer.role == "viewer"

    async def test_deactivated_user_loses_access_immediately(self, db, bus):
        admin = await create_user(db, email="a@test.com", role="admin")
        target = await create_user(db, email="t@test.com", role="manager")
        gateway = Gateway(db, bus)

        await gateway.perform(
            admin.id, user_ops.SET_USER_ACTIVE, {"user_id": target.id, "is_active": False}
        )

        with pytest.raises(UnauthenticatedError):
            await gateway.perform(target.id, user_ops.GET_USER, {"user_id": target.id})

    async def test_role_change_publishes_principal_update(self, db, bus):
        admin = await create_user(db, email="a@test.com", role="admin")
        target = await create_user(db, email="t@test.com")
        q = _listen(bus)

        await Gateway(db, bus).perform(
            admin.id, user_ops.UPDATE_USER_ROLE, {"user_id": target.id, "role": "member"}
        )

        updates = [m for m in _drain(q) if m["event"] == "principal.updated"]
        assert updates[-1]["user_id"] == target.id
        assert updates[-1]["data"]["role"] == "member"
