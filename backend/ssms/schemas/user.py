from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, StrictBool, field_validator

from ssms.schemas.common import clean_required

MIN_PASSWORD_LENGTH = 6


class CreateUserPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    display_name: str
    # Omitted role means the least-privileged default
    role: str | None = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        return clean_required(v, "Display name", 100)


class UserRef(BaseModel):
    user_id: str = Field(..., min_length=1)


class UpdateUserRolePayload(UserRef):
    role: str
    permissions: list[str] | None = None


class SetActivePayload(UserRef):
    is_active: StrictBool


class UpdateUserPayload(UserRef):
    display_name: str | None = None
    photo_url: str | None = None
    role: str | None = None
    permissions: list[str] | None = None
    is_active: StrictBool | None = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str | None) -> str | None:
        return clean_required(v, "Display name", 100) if v is not None else None


# Request bodies (ids come from the path)

class RoleChangeBody(BaseModel):
    role: str
    permissions: list[str] | None = None


class ActiveStatusBody(BaseModel):
    is_active: StrictBool


class UserUpdateBody(BaseModel):
    display_name: str | None = None
    photo_url: str | None = None
    role: str | None = None
    permissions: list[str] | None = None
    is_active: StrictBool | None = None
