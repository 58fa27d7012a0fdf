from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.core.errors import UnauthenticatedError
from ssms.core.security import decode_access_token
from ssms.database import get_db
from ssms.models.user import User
from ssms.services.directory import UserDirectory
from ssms.services.event_bus import EventBus
from ssms.services.gateway import Gateway


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_principal_id(request: Request) -> str | None:
    """Subject of the bearer token, or None when no token was sent.

    The gateway turns a missing id into an unauthenticated error, so
    endpoints never have to check.
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    payload = decode_access_token(auth[7:])
    if payload is None:
        raise UnauthenticatedError("Invalid or expired token")
    return payload.get("sub")


def get_gateway(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Gateway:
    return Gateway(db, get_event_bus(request), config=request.app.state.settings)


async def get_current_user(
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await UserDirectory(db).get(principal_id) if principal_id else None
    if user is None or not user.is_active:
        raise UnauthenticatedError("User not found or inactive")
    return user
