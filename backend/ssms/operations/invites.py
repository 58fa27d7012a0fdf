from __future__ import annotations

from ssms.core.guard import permission_or_super
from ssms.core.permissions import Permission
from ssms.operations.common import MANAGE_USERS, require_valid_role
from ssms.schemas.invite import InviteStakeholderPayload, LinkUserPayload
from ssms.services import notification_service
from ssms.services.gateway import Operation, OperationContext


async def _invite_stakeholder(ctx: OperationContext, payload: InviteStakeholderPayload) -> dict:
    token, email = await ctx.invitations.invite(payload.stakeholder_id, payload.default_role)
    return {"token": token, "email": email}


async def _link_user(ctx: OperationContext, payload: LinkUserPayload) -> dict:
    role = await ctx.invitations.redeem(payload.user_id, payload.stakeholder_id, payload.token)
    await notification_service.create_notification(
        ctx.db,
        user_id=payload.user_id,
        notif_type="invite_accepted",
        title="Invitation accepted",
        body=f"Your account is now linked with the {role} role.",
        outbox=ctx.outbox,
    )
    return {"role": role}


def _self_or_manager(principal, payload: LinkUserPayload) -> tuple:
    return () if payload.user_id == principal.id else (MANAGE_USERS,)


INVITE_STAKEHOLDER = Operation(
    "inviteStakeholder",
    _invite_stakeholder,
    InviteStakeholderPayload,
    requirements=(permission_or_super(Permission.INVITE_STAKEHOLDER),),
    checks=(require_valid_role,),
)
LINK_USER_TO_STAKEHOLDER = Operation(
    "linkUserToStakeholder",
    _link_user,
    LinkUserPayload,
    requirements=_self_or_manager,
)
