from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Depends, Query

from ssms.api.deps import get_gateway, get_principal_id
from ssms.models.event import EventStatus
from ssms.models.stakeholder import RelationshipType
from ssms.operations import events as ops
from ssms.schemas.event import EventCreatePayload, EventResponseBody, EventUpdateBody
from ssms.services.gateway import Gateway

router = APIRouter()


@router.get("")
async def list_events(
    status: EventStatus | None = Query(None),
    owner_id: str | None = Query(None),
    stakeholder_id: str | None = Query(None),
    start_after: datetime | None = Query(None),
    start_before: datetime | None = Query(None),
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    filters = {
        "status": status,
        "owner_id": owner_id,
        "stakeholder_id": stakeholder_id,
        "start_after": start_after,
        "start_before": start_before,
    }
    return await gateway.perform(principal_id, ops.LIST_EVENTS, filters)


@router.post("", status_code=201)
async def create_event(
    body: EventCreatePayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.CREATE_EVENT, body)


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.GET_EVENT, {"event_id": event_id})


@router.patch("/{event_id}")
async def update_event(
    event_id: str,
    body: EventUpdateBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"event_id": event_id, **body.model_dump(exclude_unset=True)}
    return await gateway.perform(principal_id, ops.UPDATE_EVENT, payload)


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    await gateway.perform(principal_id, ops.DELETE_EVENT, {"event_id": event_id})


@router.post("/{event_id}/stakeholders/{stakeholder_id}", status_code=201)
async def add_stakeholder(
    event_id: str,
    stakeholder_id: str,
    role: RelationshipType | None = Body(None, embed=True),
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"event_id": event_id, "stakeholder_id": stakeholder_id, "role": role}
    return await gateway.perform(principal_id, ops.ADD_STAKEHOLDER_TO_EVENT, payload)


@router.delete("/{event_id}/stakeholders/{stakeholder_id}")
async def remove_stakeholder(
    event_id: str,
    stakeholder_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"event_id": event_id, "stakeholder_id": stakeholder_id}
    return await gateway.perform(principal_id, ops.REMOVE_STAKEHOLDER_FROM_EVENT, payload)


@router.patch("/{event_id}/stakeholders/{stakeholder_id}")
async def respond_to_event(
    event_id: str,
    stakeholder_id: str,
    body: EventResponseBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"event_id": event_id, "stakeholder_id": stakeholder_id, **body.model_dump()}
    return await gateway.perform(principal_id, ops.RESPOND_TO_EVENT, payload)
