from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ssms.models.base import Base, IDMixin, TimestampMixin


class StakeholderType(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    CLIENT = "client"
    VENDOR = "vendor"
    PARTNER = "partner"


class RelationshipType(str, enum.Enum):
    ORGANIZER = "organizer"
    PRESENTER = "presenter"
    ATTENDEE = "attendee"
    SPONSOR = "sponsor"
    GUEST = "guest"
    SUPPORT = "support"


class ParticipationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    NO_RESPONSE = "noResponse"


class InviteStatus(str, enum.Enum):
    NOT_INVITED = "notInvited"
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Stakeholder(Base, IDMixin, TimestampMixin):
    __tablename__ = "stakeholders"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    organization: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default=StakeholderType.INTERNAL.value)
    relationship_type: Mapped[str] = mapped_column(
        String(20), default=RelationshipType.ATTENDEE.value
    )
    participation_status: Mapped[str] = mapped_column(
        String(20), default=ParticipationStatus.PENDING.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    event_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Written only by the invitation workflow.
    # linked_user_id is set exactly when invite_status == "accepted".
    linked_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    invite_status: Mapped[str] = mapped_column(String(20), default=InviteStatus.NOT_INVITED.value)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invite_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    default_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
