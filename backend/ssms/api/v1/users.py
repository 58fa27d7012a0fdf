from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.api.deps import get_event_bus, get_gateway, get_principal_id
from ssms.core.errors import UnauthenticatedError
from ssms.core.security import decode_access_token
from ssms.database import get_db
from ssms.operations import users as ops
from ssms.schemas.user import (
    ActiveStatusBody,
    CreateUserPayload,
    RoleChangeBody,
    UserUpdateBody,
)
from ssms.services.directory import UserDirectory
from ssms.services.event_bus import EventBus
from ssms.services.gateway import Gateway

router = APIRouter()


@router.get("/me/stream")
async def principal_stream(
    request: Request,
    token: str = Query(...),
    bus: EventBus = Depends(get_event_bus),
    db: AsyncSession = Depends(get_db),
):
    """SSE feed of changes to the caller's own account and notifications.

    Token comes in the query string because EventSource cannot set headers.
    """
    payload = decode_access_token(token)
    if payload is None:
        raise UnauthenticatedError("Invalid or expired token")
    principal = await UserDirectory(db).resolve_principal(payload.get("sub"))
    if principal is None or not principal.is_active:
        raise UnauthenticatedError("User not found or inactive")
    # Release the connection before the long-lived stream starts
    await db.rollback()

    async def generate():
        async for data in bus.subscribe(user_id=principal.id):
            if await request.is_disconnected():
                break
            yield data

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("")
async def list_users(
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.LIST_USERS)


@router.post("", status_code=201)
async def create_user(
    body: CreateUserPayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.CREATE_USER, body)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.GET_USER, {"user_id": user_id})


@router.put("/{user_id}/role")
async def update_user_role(
    user_id: str,
    body: RoleChangeBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"user_id": user_id, **body.model_dump(exclude_unset=True)}
    return await gateway.perform(principal_id, ops.UPDATE_USER_ROLE, payload)


@router.put("/{user_id}/active")
async def set_user_active(
    user_id: str,
    body: ActiveStatusBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"user_id": user_id, "is_active": body.is_active}
    return await gateway.perform(principal_id, ops.SET_USER_ACTIVE, payload)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdateBody,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    payload = {"user_id": user_id, **body.model_dump(exclude_unset=True)}
    return await gateway.perform(principal_id, ops.UPDATE_USER, payload)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    await gateway.perform(principal_id, ops.DELETE_USER, {"user_id": user_id})
