from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from ssms.models.base import Base, utcnow


class Invite(Base):
    """Single-use, time-limited credential linking a stakeholder to a future account.

    ``used`` only ever moves from False to True. A later invite for the same
    stakeholder marks earlier ones used.
    """

    __tablename__ = "invites"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    stakeholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stakeholders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    default_role: Mapped[str] = mapped_column(String(20), default="member")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    used_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
