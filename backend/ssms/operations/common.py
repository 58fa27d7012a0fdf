from __future__ import annotations

from datetime import datetime

from ssms.core.errors import SELF_MODIFICATION_FORBIDDEN, InvalidArgumentError, PermissionDeniedError
from ssms.core.guard import permission_or_super
from ssms.core.permissions import Permission, is_valid_role
from ssms.models.base import as_utc
from ssms.services.gateway import OperationContext

MANAGE_USERS = permission_or_super(Permission.MANAGE_USERS)


def iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


async def forbid_self_target(ctx: OperationContext, payload) -> None:
    if payload.user_id == ctx.principal.id:
        raise PermissionDeniedError(
            "You cannot change your own role or account status.",
            requirement=SELF_MODIFICATION_FORBIDDEN,
        )


async def require_valid_role(ctx: OperationContext, payload) -> None:
    for field in ("role", "default_role"):
        role = getattr(payload, field, None)
        if role is not None and not is_valid_role(role):
            raise InvalidArgumentError(f"Invalid role: {role!r}")
