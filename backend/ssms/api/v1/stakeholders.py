from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ssms.api.deps import get_gateway, get_principal_id
from ssms.models.stakeholder import StakeholderType
from ssms.operations import stakeholders as ops
from ssms.schemas.stakeholder import StakeholderCreatePayload, StakeholderUpdateBody
from ssms.services.gateway import Gateway

router = APIRouter()


@router.get("")
async def list_stakeholders(
    type: StakeholderType | None = Query(None),
    invite_status: str | None = Query(None),
    event_id: str | None = Query(None),
    search: str | None = Query(None),
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    filters = {
        "type": type,
        "invite_status": invite_status,
        "event_id": event_id,
        "search": search,
    }
    return await gateway.perform(principal_id, ops.LIST_STAKEHOLDERS, filters)


@router.post("", status_code=201)
async def create_stakeholder(
    body: StakeholderCreatePayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.CREATE_STAKEHOLDER, body)


@router.get("/{stakeholder_id}")
async def get_stakeholder(
    stakeholder_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(
        principal_id, ops.GET_STAKEHOLDER, {"stakeholder_id": stakeholder_id}
    )


@router.patch("/{stakeholder_id}")
async def update_stakeholder(
    stakeholder_id: str,
    body: StakeholderUpdateBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"stakeholder_id": stakeholder_id, **body.model_dump(exclude_unset=True)}
    return await gateway.perform(principal_id, ops.UPDATE_STAKEHOLDER, payload)


@router.delete("/{stakeholder_id}", status_code=204)
async def delete_stakeholder(
    stakeholder_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    await gateway.perform(principal_id, ops.DELETE_STAKEHOLDER, {"stakeholder_id": stakeholder_id})
