from __future__ import annotations

from ssms.core.errors import SELF_MODIFICATION_FORBIDDEN, PermissionDeniedError
from ssms.core.permissions import display_role
from ssms.models.user import User
from ssms.operations.common import MANAGE_USERS, forbid_self_target, iso, require_valid_role
from ssms.schemas.user import (
    CreateUserPayload,
    SetActivePayload,
    UpdateUserPayload,
    UpdateUserRolePayload,
    UserRef,
)
from ssms.services import event_service, notification_service
from ssms.services.gateway import Operation, OperationContext

# Fields a user may change on their own account
PROFILE_FIELDS = frozenset({"display_name", "photo_url"})


def user_response(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "display_name": u.display_name,
        "photo_url": u.photo_url,
        "role": u.role,
        "permissions": list(u.permissions or []),
        "display_role": display_role(u.permissions or []),
        "is_active": u.is_active,
        "stakeholder_id": u.stakeholder_id,
        "created_at": iso(u.created_at),
        "last_login_at": iso(u.last_login_at),
    }


def _self_or_manager(principal, payload) -> tuple:
    return () if payload.user_id == principal.id else (MANAGE_USERS,)


# -- reads -----------------------------------------------------------------


async def _get_user(ctx: OperationContext, payload: UserRef) -> dict:
    return user_response(await ctx.directory.require(payload.user_id))


async def _list_users(ctx: OperationContext, payload) -> list[dict]:
    return [user_response(u) for u in await ctx.directory.list_users()]


# -- writes ----------------------------------------------------------------


async def _create_user(ctx: OperationContext, payload: CreateUserPayload) -> dict:
    user = await ctx.directory.create_user(
        email=payload.email,
        display_name=payload.display_name,
        password=payload.password,
        role=payload.role,
    )
    await notification_service.create_notification(
        ctx.db,
        user_id=user.id,
        notif_type="welcome",
        title="Welcome to SSMS",
        body=f"Hi {user.display_name}, your account is ready.",
        outbox=ctx.outbox,
    )
    return {"id": user.id}


async def _update_user_role(ctx: OperationContext, payload: UpdateUserRolePayload) -> dict:
    user = await ctx.directory.apply_role_change(payload.user_id, payload.role, payload.permissions)
    await notification_service.create_notification(
        ctx.db,
        user_id=user.id,
        notif_type="role_changed",
        title="Your role has changed",
        body=f"You now have the {user.role} role.",
        outbox=ctx.outbox,
    )
    return {"role": user.role, "permissions": list(user.permissions)}


async def _set_user_active(ctx: OperationContext, payload: SetActivePayload) -> dict:
    user = await ctx.directory.set_active(payload.user_id, payload.is_active)
    return {"is_active": user.is_active}


async def _forbid_self_privileged_fields(ctx: OperationContext, payload: UpdateUserPayload) -> None:
    if payload.user_id != ctx.principal.id:
        return
    if payload.model_fields_set - PROFILE_FIELDS - {"user_id"}:
        raise PermissionDeniedError(
            "You can only change your display name and photo.",
            requirement=SELF_MODIFICATION_FORBIDDEN,
        )


async def _update_user(ctx: OperationContext, payload: UpdateUserPayload) -> dict:
    directory = ctx.directory
    user = await directory.update_profile(
        payload.user_id, display_name=payload.display_name, photo_url=payload.photo_url
    )
    if payload.role is not None or payload.permissions is not None:
        user = await directory.apply_role_change(
            user.id,
            payload.role if payload.role is not None else user.role,
            payload.permissions,
        )
    if payload.is_active is not None:
        user = await directory.set_active(user.id, payload.is_active)
    return user_response(user)


async def _delete_user(ctx: OperationContext, payload: UserRef) -> None:
    user = await ctx.directory.require(payload.user_id)
    await notification_service.delete_for_user(ctx.db, user.id)
    await event_service.release_owner(ctx.db, user.id)
    await ctx.invitations.release_user(user.id)
    await ctx.directory.delete_user(user.id)


GET_USER = Operation(
    "getUser", _get_user, UserRef, requirements=_self_or_manager, mutating=False
)
LIST_USERS = Operation("getAllUsers", _list_users, requirements=(MANAGE_USERS,), mutating=False)
CREATE_USER = Operation(
    "createUser",
    _create_user,
    CreateUserPayload,
    requirements=(MANAGE_USERS,),
    checks=(require_valid_role,),
)
UPDATE_USER_ROLE = Operation(
    "updateUserRole",
    _update_user_role,
    UpdateUserRolePayload,
    requirements=(MANAGE_USERS,),
    checks=(forbid_self_target, require_valid_role),
)
SET_USER_ACTIVE = Operation(
    "setUserActiveStatus",
    _set_user_active,
    SetActivePayload,
    requirements=(MANAGE_USERS,),
    checks=(forbid_self_target,),
)
UPDATE_USER = Operation(
    "updateUser",
    _update_user,
    UpdateUserPayload,
    requirements=_self_or_manager,
    checks=(_forbid_self_privileged_fields, require_valid_role),
)
DELETE_USER = Operation(
    "deleteUser",
    _delete_user,
    UserRef,
    requirements=(MANAGE_USERS,),
    checks=(forbid_self_target,),
)
