from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.api.deps import get_gateway, get_principal_id
from ssms.core.rate_limit import limiter
from ssms.database import get_db
from ssms.operations import invites as ops
from ssms.schemas.invite import InviteStakeholderPayload, LinkUserPayload, TokenValidation
from ssms.services.gateway import Gateway
from ssms.services.invitation_service import InvitationService

router = APIRouter()


@router.post("", status_code=201)
async def invite_stakeholder(
    body: InviteStakeholderPayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.INVITE_STAKEHOLDER, body)


@router.post("/link")
async def link_user_to_stakeholder(
    body: LinkUserPayload,
    principal_id: str | None = Depends(get_principal_id),
    gateway: Gateway = Depends(get_gateway),
):
    return await gateway.perform(principal_id, ops.LINK_USER_TO_STAKEHOLDER, body)


@router.get("/{token}", response_model=TokenValidation, response_model_exclude_none=True)
@limiter.limit("20/minute")
async def validate_invite_token(request: Request, token: str, db: AsyncSession = Depends(get_db)):
    """Public lookup used by the signup screen before an account exists."""
    return await InvitationService(db).validate(token)
