from __future__ import annotations

from ssms.core.errors import NotFoundError
from ssms.models.notification import Notification
from ssms.operations.common import MANAGE_USERS, iso
from ssms.schemas.notification import (
    ListNotificationsPayload,
    NotificationRef,
    SendNotificationPayload,
)
from ssms.services import notification_service
from ssms.services.gateway import Operation, OperationContext


def notification_response(n: Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "event_id": n.event_id,
        "is_read": n.is_read,
        "read_at": iso(n.read_at),
        "created_at": iso(n.created_at),
    }


async def _list(ctx: OperationContext, payload: ListNotificationsPayload) -> list[dict]:
    items = await notification_service.list_notifications(
        ctx.db, ctx.principal.id, limit=payload.limit, unread_only=payload.unread_only
    )
    return [notification_response(n) for n in items]


async def _unread_count(ctx: OperationContext, payload) -> dict:
    return {"count": await notification_service.get_unread_count(ctx.db, ctx.principal.id)}


async def _mark_read(ctx: OperationContext, payload: NotificationRef) -> dict:
    ok = await notification_service.mark_as_read(ctx.db, payload.notification_id, ctx.principal.id)
    if not ok:
        raise NotFoundError("Notification not found")
    return {"ok": True}


async def _mark_all_read(ctx: OperationContext, payload) -> dict:
    return {"updated": await notification_service.mark_all_as_read(ctx.db, ctx.principal.id)}


async def _send(ctx: OperationContext, payload: SendNotificationPayload) -> dict:
    await ctx.directory.require(payload.user_id)
    notif = await notification_service.create_notification(
        ctx.db,
        user_id=payload.user_id,
        notif_type=payload.type,
        title=payload.title,
        body=payload.body,
        event_id=payload.event_id,
        outbox=ctx.outbox,
    )
    return {"id": notif.id if notif else None, "delivered": notif is not None}


LIST_NOTIFICATIONS = Operation(
    "listNotifications", _list, ListNotificationsPayload, mutating=False
)
UNREAD_COUNT = Operation("getUnreadCount", _unread_count, mutating=False)
MARK_NOTIFICATION_READ = Operation("markNotificationRead", _mark_read, NotificationRef)
MARK_ALL_NOTIFICATIONS_READ = Operation("markAllNotificationsRead", _mark_all_read)
SEND_NOTIFICATION = Operation(
    "sendNotification", _send, SendNotificationPayload, requirements=(MANAGE_USERS,)
)
