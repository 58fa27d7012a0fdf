from __future__ import annotations

from pydantic import BaseModel, Field


class SendNotificationPayload(BaseModel):
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)
    type: str = "general"
    event_id: str | None = None


class ListNotificationsPayload(BaseModel):
    limit: int | None = Field(None, ge=1, le=500)
    unread_only: bool = False


class NotificationRef(BaseModel):
    notification_id: str = Field(..., min_length=1)
