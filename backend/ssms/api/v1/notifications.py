from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ssms.api.deps import get_gateway, get_principal_id
from ssms.operations import notifications as ops
from ssms.schemas.notification import SendNotificationPayload
from ssms.services.gateway import Gateway

router = APIRouter()


@router.get("")
async def list_notifications(
    limit: int | None = Query(None, ge=1, le=500),
    unread_only: bool = Query(False),
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"limit": limit, "unread_only": unread_only}
    return await gateway.perform(principal_id, ops.LIST_NOTIFICATIONS, payload)


@router.get("/unread-count")
async def unread_count(
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.UNREAD_COUNT)


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"notification_id": notification_id}
    return await gateway.perform(principal_id, ops.MARK_NOTIFICATION_READ, payload)


@router.post("/mark-all-read")
async def mark_all_read(
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.MARK_ALL_NOTIFICATIONS_READ)


@router.post("", status_code=201)
async def send_notification(
    body: SendNotificationPayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.SEND_NOTIFICATION, body)
