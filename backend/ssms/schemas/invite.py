from __future__ import annotations

from pydantic import BaseModel, Field


class InviteStakeholderPayload(BaseModel):
    stakeholder_id: str = Field(..., min_length=1)
    default_role: str = "member"


class LinkUserPayload(BaseModel):
    user_id: str = Field(..., min_length=1)
    stakeholder_id: str = Field(..., min_length=1)
    token: str | None = None


class TokenValidation(BaseModel):
    valid: bool
    email: str | None = None
    stakeholder_id: str | None = None
    default_role: str | None = None
    reason: str | None = None
