"""Notification service: in-app notifications, delivered live through the outbox."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.models.base import utcnow
from ssms.models.event import Event
from ssms.models.notification import Notification
from ssms.models.stakeholder import Stakeholder
from ssms.models.user import User
from ssms.services.event_bus import Outbox


async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    title: str,
    body: str = "",
    notif_type: str = "general",
    event_id: str | None = None,
    outbox: Outbox | None = None,
) -> Notification | None:
    """Create a notification for an active user.

    Returns None when the recipient is missing or deactivated.
    """
    user = await db.get(User, user_id)
    if not user or not user.is_active:
        return None

    notif = Notification(
        user_id=user_id,
        type=notif_type,
        title=title,
        body=body,
        event_id=event_id,
    )
    db.add(notif)
    await db.flush()

    if outbox is not None:
        outbox.stage(
            "notification.created",
            {
                "id": notif.id,
                "user_id": user_id,
                "type": notif_type,
                "title": title,
                "body": body,
                "event_id": event_id,
            },
            user_id=user_id,
        )
    return notif


async def notify_event_assignment(
    db: AsyncSession,
    *,
    event: Event,
    stakeholder_ids: list[str],
    outbox: Outbox | None = None,
) -> list[Notification]:
    """Tell the linked user of each stakeholder that they were added to ``event``.

    Stakeholders without a linked account are skipped.
    """
    if not stakeholder_ids:
        return []
    result = await db.execute(
        select(Stakeholder).where(
            Stakeholder.id.in_(stakeholder_ids),
            Stakeholder.linked_user_id.is_not(None),
        )
    )
    notifications = []
    for stakeholder in result.scalars().all():
        notif = await create_notification(
            db,
            user_id=stakeholder.linked_user_id,
            notif_type="event_assignment",
            title="New Event Assignment",
            body=f'You have been assigned to "{event.title}"',
            event_id=event.id,
            outbox=outbox,
        )
        if notif:
            notifications.append(notif)
    return notifications


async def list_notifications(
    db: AsyncSession, user_id: str, *, limit: int | None = None, unread_only: bool = False
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    stmt = stmt.order_by(Notification.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return result.scalar() or 0


async def mark_as_read(db: AsyncSession, notification_id: str, user_id: str) -> bool:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        return False
    if not notif.is_read:
        notif.is_read = True
        notif.read_at = utcnow()
        await db.flush()
    return True


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    notifications = result.scalars().all()
    now = utcnow()
    for n in notifications:
        n.is_read = True
        n.read_at = now
    await db.flush()
    return len(notifications)


async def delete_for_user(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(delete(Notification).where(Notification.user_id == user_id))
    return result.rowcount or 0
