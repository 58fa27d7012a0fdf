from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from ssms.models.base import as_utc
from ssms.models.event import EventPriority, EventStatus
from ssms.models.stakeholder import ParticipationStatus, RelationshipType
from ssms.schemas.common import starts_alnum

TITLE_MIN = 3
TITLE_MAX = 100
DESCRIPTION_MAX = 500


def _validate_title(v: str) -> str:
    trimmed = v.strip()
    if not trimmed:
        raise ValueError("Event title is required")
    if len(trimmed) < TITLE_MIN:
        raise ValueError(f"Title must be at least {TITLE_MIN} characters")
    if len(trimmed) > TITLE_MAX:
        raise ValueError(f"Title must be less than {TITLE_MAX} characters")
    if not starts_alnum(trimmed):
        raise ValueError("Title must start with a letter or number")
    return trimmed


def _validate_description(v: str | None) -> str | None:
    if v is not None and len(v.strip()) > DESCRIPTION_MAX:
        raise ValueError(f"Description must be less than {DESCRIPTION_MAX} characters")
    return v.strip() if v is not None else None


class EventLocation(BaseModel):
    name: str
    address: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    is_virtual: bool = False
    virtual_link: str | None = None


class EventCreatePayload(BaseModel):
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    location: EventLocation | None = None
    status: EventStatus = EventStatus.SCHEDULED
    priority: EventPriority = EventPriority.MEDIUM
    stakeholder_ids: list[str] = []
    recurrence_rule: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _validate_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _validate_description(v)

    @model_validator(mode="after")
    def check_times(self) -> EventCreatePayload:
        if self.end_time is not None and as_utc(self.end_time) <= as_utc(self.start_time):
            raise ValueError("End time must be after start time")
        return self


class EventRef(BaseModel):
    event_id: str = Field(..., min_length=1)


class EventUpdateBody(BaseModel):
    title: str | None = None
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: EventLocation | None = None
    status: EventStatus | None = None
    priority: EventPriority | None = None
    recurrence_rule: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _validate_title(v) if v is not None else None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _validate_description(v)


class EventUpdatePayload(EventUpdateBody, EventRef):
    pass


class EventListPayload(BaseModel):
    status: EventStatus | None = None
    owner_id: str | None = None
    stakeholder_id: str | None = None
    start_after: datetime | None = None
    start_before: datetime | None = None


class EventStakeholderPayload(EventRef):
    stakeholder_id: str = Field(..., min_length=1)
    role: RelationshipType | None = None


class EventResponseBody(BaseModel):
    status: ParticipationStatus
    response_note: str | None = Field(None, max_length=500)


class EventResponsePayload(EventResponseBody, EventRef):
    stakeholder_id: str = Field(..., min_length=1)
