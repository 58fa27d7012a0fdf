"""Tests for event records, stakeholder assignment sync and stakeholder cleanup."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from ssms.core.errors import InvalidArgumentError, NotFoundError
from ssms.models.event import EventStakeholder
from ssms.models.invite import Invite
from ssms.models.notification import Notification
from ssms.models.stakeholder import ParticipationStatus
from ssms.services import event_service, stakeholder_service
from ssms.services.directory import UserDirectory
from tests.conftest import create_event, create_invite, create_stakeholder, create_user


async def _assignments(db, event_id):
    result = await db.execute(
        select(EventStakeholder).where(EventStakeholder.event_id == event_id)
    )
    return list(result.scalars().all())


class TestAssignment:
    async def test_add_updates_both_sides(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)

        link = await event_service.add_stakeholder(db, event, stakeholder.id)

        assert event.stakeholder_ids == [stakeholder.id]
        assert stakeholder.event_ids == [event.id]
        assert link.status == "pending"
        assert link.role == "attendee"

    async def test_add_is_idempotent(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)

        await event_service.add_stakeholder(db, event, stakeholder.id)
        await event_service.add_stakeholder(db, event, stakeholder.id)

        assert event.stakeholder_ids == [stakeholder.id]
        assert len(await _assignments(db, event.id)) == 1

    async def test_add_notifies_linked_user(self, db):
        user = await create_user(db)
        stakeholder = await create_stakeholder(
            db, linked_user_id=user.id, invite_status="accepted"
        )
        event = await create_event(db)

        await event_service.add_stakeholder(db, event, stakeholder.id)

        result = await db.execute(select(Notification).where(Notification.user_id == user.id))
        assert [n.type for n in result.scalars().all()] == ["event_assignment"]

    async def test_add_unknown_stakeholder(self, db):
        event = await create_event(db)
        with pytest.raises(NotFoundError):
            await event_service.add_stakeholder(db, event, "missing")

    async def test_remove_updates_both_sides(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)
        await event_service.add_stakeholder(db, event, stakeholder.id)

        assert await event_service.remove_stakeholder(db, event, stakeholder.id) is True
        assert event.stakeholder_ids == []
        assert stakeholder.event_ids == []
        assert await _assignments(db, event.id) == []

    async def test_remove_absent_is_noop(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)
        assert await event_service.remove_stakeholder(db, event, stakeholder.id) is False


class TestEventLifecycle:
    async def test_create_with_initial_stakeholders(self, db):
        owner = await create_user(db, role="manager")
        stakeholder = await create_stakeholder(db)

        event = await event_service.create_event(
            db,
            owner=owner,
            fields={"title": "Kickoff", "start_time": datetime(2030, 1, 1, tzinfo=timezone.utc)},
            stakeholder_ids=[stakeholder.id],
        )

        assert event.owner_name == owner.display_name
        assert event.stakeholder_ids == [stakeholder.id]
        assert stakeholder.event_ids == [event.id]

    async def test_update_rejects_end_before_start(self, db):
        event = await create_event(db)
        with pytest.raises(InvalidArgumentError, match="End time"):
            await event_service.update_event(db, event, {"end_time": event.start_time})

    async def test_delete_cleans_up_stakeholders(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)
        await event_service.add_stakeholder(db, event, stakeholder.id)

        await event_service.delete_event(db, event)

        assert stakeholder.event_ids == []
        assert await _assignments(db, event.id) == []

    async def test_respond(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)
        await event_service.add_stakeholder(db, event, stakeholder.id)

        link = await event_service.respond(
            db, event.id, stakeholder.id, ParticipationStatus.ACCEPTED, "See you there"
        )

        assert link.status == "accepted"
        assert link.response_note == "See you there"
        assert link.responded_at is not None

    async def test_respond_requires_assignment(self, db):
        event = await create_event(db)
        stakeholder = await create_stakeholder(db)
        with pytest.raises(NotFoundError):
            await event_service.respond(
                db, event.id, stakeholder.id, ParticipationStatus.DECLINED
            )

    async def test_release_owner(self, db):
        owner = await create_user(db)
        event = await create_event(db, owner=owner)

        assert await event_service.release_owner(db, owner.id) == 1
        await db.refresh(event)
        assert event.owner_id is None
        assert event.owner_name == "Deleted User"

    async def test_list_filters(self, db):
        owner = await create_user(db)
        mine = await create_event(db, owner=owner, title="Mine")
        await create_event(db, title="Other", status="draft")

        assert [e.id for e in await event_service.list_events(db, owner_id=owner.id)] == [mine.id]
        drafts = await event_service.list_events(db, status="draft")
        assert [e.title for e in drafts] == ["Other"]


class TestStakeholderDelete:
    async def test_removes_links_invites_and_user_reference(self, db):
        user = await create_user(db)
        stakeholder = await create_stakeholder(db)
        event = await create_event(db)
        await event_service.add_stakeholder(db, event, stakeholder.id)
        token = await create_invite(db, stakeholder)
        user.stakeholder_id = stakeholder.id
        await db.commit()

        await stakeholder_service.delete_stakeholder(db, stakeholder, UserDirectory(db))
        await db.commit()

        assert event.stakeholder_ids == []
        assert await _assignments(db, event.id) == []
        assert await db.get(Invite, token) is None
        assert user.stakeholder_id is None

    async def test_search(self, db):
        await create_stakeholder(db, name="Jane Doe", email="jane@x.com", organization="Acme")
        await create_stakeholder(db, name="Bob Roe", email="bob@y.com")

        found = await stakeholder_service.list_stakeholders(db, search="acme")
        assert [s.name for s in found] == ["Jane Doe"]
