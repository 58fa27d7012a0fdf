from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ssms.models.base import Base, IDMixin, TimestampMixin, utcnow
from ssms.models.stakeholder import ParticipationStatus, RelationshipType


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Event(Base, IDMixin, TimestampMixin):
    __tablename__ = "events"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # {"name", "address", "latitude", "longitude", "is_virtual", "virtual_link"}
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # Cleared (not cascaded) when the owning user is deleted
    owner_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=EventStatus.SCHEDULED.value)
    priority: Mapped[str] = mapped_column(String(20), default=EventPriority.MEDIUM.value)
    stakeholder_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recurrence_rule: Mapped[str | None] = mapped_column(String(500), nullable=True)


class EventStakeholder(Base, IDMixin):
    """Per-event role and response of one stakeholder."""

    __tablename__ = "event_stakeholders"
    __table_args__ = (UniqueConstraint("event_id", "stakeholder_id", name="uq_event_stakeholder"),)

    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stakeholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stakeholders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), default=RelationshipType.ATTENDEE.value)
    status: Mapped[str] = mapped_column(String(20), default=ParticipationStatus.PENDING.value)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_note: Mapped[str | None] = mapped_column(Text, nullable=True)
