from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.core.errors import NotFoundError
from ssms.models.event import Event, EventStakeholder
from ssms.models.invite import Invite
from ssms.models.stakeholder import Stakeholder
from ssms.services.directory import UserDirectory

logger = logging.getLogger(__name__)


async def get_stakeholder(db: AsyncSession, stakeholder_id: str) -> Stakeholder:
    stakeholder = await db.get(Stakeholder, stakeholder_id)
    if stakeholder is None:
        raise NotFoundError("Stakeholder not found")
    return stakeholder


async def list_stakeholders(
    db: AsyncSession,
    *,
    type: str | None = None,
    invite_status: str | None = None,
    event_id: str | None = None,
    search: str | None = None,
) -> list[Stakeholder]:
    stmt = select(Stakeholder)
    if type:
        stmt = stmt.where(Stakeholder.type == type)
    if invite_status:
        stmt = stmt.where(Stakeholder.invite_status == invite_status)
    if event_id:
        stmt = stmt.join(EventStakeholder, EventStakeholder.stakeholder_id == Stakeholder.id).where(
            EventStakeholder.event_id == event_id
        )
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Stakeholder.name).like(pattern),
                func.lower(Stakeholder.email).like(pattern),
                func.lower(Stakeholder.organization).like(pattern),
            )
        )
    result = await db.execute(stmt.order_by(Stakeholder.name))
    return list(result.scalars().all())


async def create_stakeholder(db: AsyncSession, fields: dict) -> Stakeholder:
    stakeholder = Stakeholder(event_ids=[], **fields)
    db.add(stakeholder)
    await db.flush()
    logger.info("Created stakeholder %s", stakeholder.id)
    return stakeholder


async def update_stakeholder(db: AsyncSession, stakeholder: Stakeholder, fields: dict) -> Stakeholder:
    for key, value in fields.items():
        setattr(stakeholder, key, value)
    await db.flush()
    return stakeholder


async def delete_stakeholder(
    db: AsyncSession, stakeholder: Stakeholder, directory: UserDirectory
) -> None:
    """Delete a stakeholder, its invites and assignments, and unlink its user."""
    if stakeholder.event_ids:
        result = await db.execute(select(Event).where(Event.id.in_(stakeholder.event_ids)))
        for event in result.scalars().all():
            event.stakeholder_ids = [s for s in event.stakeholder_ids or [] if s != stakeholder.id]
    await db.execute(
        delete(EventStakeholder).where(EventStakeholder.stakeholder_id == stakeholder.id)
    )
    await db.execute(delete(Invite).where(Invite.stakeholder_id == stakeholder.id))
    await directory.release_stakeholder(stakeholder.id)
    await db.delete(stakeholder)
    await db.flush()
    logger.info("Deleted stakeholder %s", stakeholder.id)
