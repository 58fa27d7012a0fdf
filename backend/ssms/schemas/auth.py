from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from ssms.schemas.common import clean_required
from ssms.schemas.user import MIN_PASSWORD_LENGTH


class RegisterRequest(BaseModel):
    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    # Optional invite token; when present the new account is linked on signup
    invite_token: str | None = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        return clean_required(v, "Display name", 100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
