"""Event records and their stakeholder assignments.

``Event.stakeholder_ids`` and ``Stakeholder.event_ids`` mirror each other;
every assignment change updates both sides plus the ``EventStakeholder`` row.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.core.errors import InvalidArgumentError, NotFoundError
from ssms.models.base import as_utc, utcnow
from ssms.models.event import Event, EventStakeholder
from ssms.models.stakeholder import ParticipationStatus, RelationshipType, Stakeholder
from ssms.models.user import User
from ssms.services import notification_service
from ssms.services.event_bus import Outbox

logger = logging.getLogger(__name__)

DELETED_OWNER_NAME = "Deleted User"


def _with(values: list | None, item: str) -> list:
    values = list(values or [])
    if item not in values:
        values.append(item)
    return values


def _without(values: list | None, item: str) -> list:
    return [v for v in (values or []) if v != item]


async def get_event(db: AsyncSession, event_id: str) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def list_events(
    db: AsyncSession,
    *,
    status: str | None = None,
    owner_id: str | None = None,
    stakeholder_id: str | None = None,
    start_after: datetime | None = None,
    start_before: datetime | None = None,
) -> list[Event]:
    stmt = select(Event)
    if status:
        stmt = stmt.where(Event.status == status)
    if owner_id:
        stmt = stmt.where(Event.owner_id == owner_id)
    if stakeholder_id:
        stmt = stmt.join(EventStakeholder, EventStakeholder.event_id == Event.id).where(
            EventStakeholder.stakeholder_id == stakeholder_id
        )
    if start_after:
        stmt = stmt.where(Event.start_time >= start_after)
    if start_before:
        stmt = stmt.where(Event.start_time <= start_before)
    result = await db.execute(stmt.order_by(Event.start_time))
    return list(result.scalars().all())


async def create_event(
    db: AsyncSession,
    *,
    owner: User,
    fields: dict,
    stakeholder_ids: list[str] | None = None,
    outbox: Outbox | None = None,
) -> Event:
    event = Event(
        owner_id=owner.id,
        owner_name=owner.display_name,
        stakeholder_ids=[],
        **fields,
    )
    db.add(event)
    await db.flush()
    for stakeholder_id in stakeholder_ids or []:
        await add_stakeholder(db, event, stakeholder_id, outbox=outbox)
    logger.info("Created event %s", event.id)
    return event


async def update_event(db: AsyncSession, event: Event, fields: dict) -> Event:
    start = fields.get("start_time", event.start_time)
    end = fields.get("end_time", event.end_time)
    if start is not None and end is not None and as_utc(end) <= as_utc(start):
        raise InvalidArgumentError("End time must be after start time")
    for key, value in fields.items():
        setattr(event, key, value)
    await db.flush()
    return event


async def delete_event(db: AsyncSession, event: Event) -> None:
    if event.stakeholder_ids:
        result = await db.execute(
            select(Stakeholder).where(Stakeholder.id.in_(event.stakeholder_ids))
        )
        for stakeholder in result.scalars().all():
            stakeholder.event_ids = _without(stakeholder.event_ids, event.id)
    await db.execute(delete(EventStakeholder).where(EventStakeholder.event_id == event.id))
    await db.delete(event)
    await db.flush()
    logger.info("Deleted event %s", event.id)


async def add_stakeholder(
    db: AsyncSession,
    event: Event,
    stakeholder_id: str,
    *,
    role: str | None = None,
    outbox: Outbox | None = None,
) -> EventStakeholder:
    """Assign a stakeholder to ``event``. Re-adding an assigned stakeholder is a no-op."""
    stakeholder = await db.get(Stakeholder, stakeholder_id)
    if stakeholder is None:
        raise NotFoundError("Stakeholder not found")

    result = await db.execute(
        select(EventStakeholder).where(
            EventStakeholder.event_id == event.id,
            EventStakeholder.stakeholder_id == stakeholder_id,
        )
    )
    link = result.scalar_one_or_none()
    if link is not None:
        return link

    link = EventStakeholder(
        event_id=event.id,
        stakeholder_id=stakeholder_id,
        role=role or stakeholder.relationship_type or RelationshipType.ATTENDEE.value,
    )
    db.add(link)
    event.stakeholder_ids = _with(event.stakeholder_ids, stakeholder_id)
    stakeholder.event_ids = _with(stakeholder.event_ids, event.id)
    await db.flush()
    await notification_service.notify_event_assignment(
        db, event=event, stakeholder_ids=[stakeholder_id], outbox=outbox
    )
    return link


async def remove_stakeholder(db: AsyncSession, event: Event, stakeholder_id: str) -> bool:
    result = await db.execute(
        delete(EventStakeholder).where(
            EventStakeholder.event_id == event.id,
            EventStakeholder.stakeholder_id == stakeholder_id,
        )
    )
    event.stakeholder_ids = _without(event.stakeholder_ids, stakeholder_id)
    stakeholder = await db.get(Stakeholder, stakeholder_id)
    if stakeholder is not None:
        stakeholder.event_ids = _without(stakeholder.event_ids, event.id)
    await db.flush()
    return bool(result.rowcount)


async def list_assignments(db: AsyncSession, event_id: str) -> list[EventStakeholder]:
    result = await db.execute(
        select(EventStakeholder)
        .where(EventStakeholder.event_id == event_id)
        .order_by(EventStakeholder.assigned_at)
    )
    return list(result.scalars().all())


async def respond(
    db: AsyncSession,
    event_id: str,
    stakeholder_id: str,
    status: ParticipationStatus,
    note: str | None = None,
) -> EventStakeholder:
    result = await db.execute(
        select(EventStakeholder).where(
            EventStakeholder.event_id == event_id,
            EventStakeholder.stakeholder_id == stakeholder_id,
        )
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise NotFoundError("Stakeholder is not assigned to this event")
    link.status = status.value
    link.response_note = note
    link.responded_at = utcnow()
    await db.flush()
    return link


async def release_owner(db: AsyncSession, user_id: str) -> int:
    """Detach events from a deleted owner, keeping the events themselves."""
    result = await db.execute(
        update(Event)
        .where(Event.owner_id == user_id)
        .values(owner_id=None, owner_name=DELETED_OWNER_NAME)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0
