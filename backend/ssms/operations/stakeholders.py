from __future__ import annotations

from ssms.core.guard import permission_or_super
from ssms.core.permissions import Permission
from ssms.models.stakeholder import Stakeholder
from ssms.operations.common import iso
from ssms.schemas.stakeholder import (
    StakeholderCreatePayload,
    StakeholderListPayload,
    StakeholderRef,
    StakeholderUpdatePayload,
)
from ssms.services import stakeholder_service
from ssms.services.gateway import Operation, OperationContext


def stakeholder_response(s: Stakeholder) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "email": s.email,
        "phone": s.phone,
        "organization": s.organization,
        "title": s.title,
        "notes": s.notes,
        "type": s.type,
        "relationship_type": s.relationship_type,
        "participation_status": s.participation_status,
        "is_active": s.is_active,
        "event_ids": list(s.event_ids or []),
        "linked_user_id": s.linked_user_id,
        "invite_status": s.invite_status,
        "invited_at": iso(s.invited_at),
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }


async def _create(ctx: OperationContext, payload: StakeholderCreatePayload) -> dict:
    fields = payload.model_dump(mode="json")
    fields["email"] = fields["email"].lower()
    return stakeholder_response(await stakeholder_service.create_stakeholder(ctx.db, fields))


async def _get(ctx: OperationContext, payload: StakeholderRef) -> dict:
    return stakeholder_response(
        await stakeholder_service.get_stakeholder(ctx.db, payload.stakeholder_id)
    )


async def _list(ctx: OperationContext, payload: StakeholderListPayload) -> list[dict]:
    stakeholders = await stakeholder_service.list_stakeholders(
        ctx.db,
        type=payload.type.value if payload.type else None,
        invite_status=payload.invite_status,
        event_id=payload.event_id,
        search=payload.search,
    )
    return [stakeholder_response(s) for s in stakeholders]


async def _update(ctx: OperationContext, payload: StakeholderUpdatePayload) -> dict:
    stakeholder = await stakeholder_service.get_stakeholder(ctx.db, payload.stakeholder_id)
    fields = payload.model_dump(exclude_unset=True, exclude={"stakeholder_id"}, mode="json")
    if "email" in fields:
        fields["email"] = fields["email"].lower()
    return stakeholder_response(
        await stakeholder_service.update_stakeholder(ctx.db, stakeholder, fields)
    )


async def _delete(ctx: OperationContext, payload: StakeholderRef) -> None:
    stakeholder = await stakeholder_service.get_stakeholder(ctx.db, payload.stakeholder_id)
    await stakeholder_service.delete_stakeholder(ctx.db, stakeholder, ctx.directory)


CREATE_STAKEHOLDER = Operation(
    "createStakeholder",
    _create,
    StakeholderCreatePayload,
    requirements=(permission_or_super(Permission.CREATE_STAKEHOLDER),),
)
GET_STAKEHOLDER = Operation(
    "getStakeholder",
    _get,
    StakeholderRef,
    requirements=(permission_or_super(Permission.VIEW_STAKEHOLDER),),
    mutating=False,
)
LIST_STAKEHOLDERS = Operation(
    "listStakeholders",
    _list,
    StakeholderListPayload,
    requirements=(permission_or_super(Permission.VIEW_STAKEHOLDER),),
    mutating=False,
)
UPDATE_STAKEHOLDER = Operation(
    "updateStakeholder",
    _update,
    StakeholderUpdatePayload,
    requirements=(permission_or_super(Permission.EDIT_STAKEHOLDER),),
)
DELETE_STAKEHOLDER = Operation(
    "deleteStakeholder",
    _delete,
    StakeholderRef,
    requirements=(permission_or_super(Permission.DELETE_STAKEHOLDER),),
)
