from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.api.deps import get_current_user, get_event_bus
from ssms.core.errors import InternalError, SSMSError, UnauthenticatedError
from ssms.core.permissions import Role
from ssms.core.rate_limit import limiter
from ssms.core.security import create_access_token, verify_password
from ssms.database import get_db
from ssms.models.user import User
from ssms.operations.users import user_response
from ssms.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from ssms.services.directory import UserDirectory
from ssms.services.event_bus import EventBus, Outbox
from ssms.services.invitation_service import InvitationService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=TokenResponse)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Create an account. The first account becomes root; later ones start as viewers.

    With ``invite_token`` the new account is linked to the invited
    stakeholder in the same transaction.
    """
    outbox = Outbox(bus)
    invitations = InvitationService(db, outbox, config=request.app.state.settings)
    try:
        user = await _create_account(invitations, body)
        await db.commit()
    except SSMSError:
        outbox.discard()
        await db.rollback()
        raise
    except Exception as exc:
        outbox.discard()
        await db.rollback()
        logger.exception("Registration failed", extra={"operation": "register"})
        raise InternalError() from exc
    await outbox.flush()
    return TokenResponse(access_token=create_access_token(user.id, user.role))


async def _create_account(invitations: InvitationService, body: RegisterRequest) -> User:
    directory = invitations.directory
    is_first_user = await directory.count() == 0

    user = await directory.create_user(
        email=body.email,
        display_name=body.display_name,
        password=body.password,
        role=Role.ROOT.value if is_first_user else None,
    )
    if body.invite_token:
        check = await invitations.check_token(body.invite_token)
        if check.valid:
            await invitations.redeem(user.id, check.invite.stakeholder_id, body.invite_token)
        else:
            logger.info("Ignoring %s invite token at registration", check.reason)
    return user

@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(request: Request, body: LoginRequest, db: AsyncSession = Depends(get_db)):
    directory = UserDirectory(db)
    user = await directory.get_by_email(body.email)
    if not user or not user.password_hash or not verify_password(body.password, user.password_hash):
        raise UnauthenticatedError("Invalid credentials")
    if not user.is_active:
        raise UnauthenticatedError("Account is disabled")
    await directory.record_login(user)
    await db.commit()
    return TokenResponse(access_token=create_access_token(user.id, user.role))


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return user_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(user: User = Depends(get_current_user)):
    return TokenResponse(access_token=create_access_token(user.id, user.role))
