from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from ssms.models.stakeholder import ParticipationStatus, RelationshipType, StakeholderType
from ssms.schemas.common import clean_required


class StakeholderCreatePayload(BaseModel):
    name: str
    email: EmailStr
    phone: str | None = None
    organization: str | None = None
    title: str | None = None
    notes: str | None = None
    type: StakeholderType = StakeholderType.INTERNAL
    relationship_type: RelationshipType = RelationshipType.ATTENDEE

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_required(v, "Name", 100)


class StakeholderRef(BaseModel):
    stakeholder_id: str = Field(..., min_length=1)


class StakeholderUpdateBody(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    organization: str | None = None
    title: str | None = None
    notes: str | None = None
    type: StakeholderType | None = None
    relationship_type: RelationshipType | None = None
    participation_status: ParticipationStatus | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return clean_required(v, "Name", 100) if v is not None else None


class StakeholderUpdatePayload(StakeholderUpdateBody, StakeholderRef):
    pass


class StakeholderListPayload(BaseModel):
    type: StakeholderType | None = None
    invite_status: str | None = None
    event_id: str | None = None
    search: str | None = None
