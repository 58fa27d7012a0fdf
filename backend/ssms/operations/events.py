from __future__ import annotations

from ssms.core.guard import HasPermission, Predicate, permission_or_super, require_access
from ssms.core.permissions import Permission
from ssms.models.event import Event, EventStakeholder
from ssms.operations.common import iso
from ssms.schemas.event import (
    EventCreatePayload,
    EventListPayload,
    EventRef,
    EventResponsePayload,
    EventStakeholderPayload,
    EventUpdatePayload,
)
from ssms.services import event_service, stakeholder_service
from ssms.services.gateway import Operation, OperationContext

VIEW_EVENTS = permission_or_super(Permission.VIEW_EVENT)
EDIT_EVENTS = permission_or_super(Permission.EDIT_EVENT)
ASSIGN_STAKEHOLDERS = permission_or_super(Permission.ASSIGN_STAKEHOLDER)


def assignment_response(a: EventStakeholder) -> dict:
    return {
        "stakeholder_id": a.stakeholder_id,
        "role": a.role,
        "status": a.status,
        "assigned_at": iso(a.assigned_at),
        "responded_at": iso(a.responded_at),
        "response_note": a.response_note,
    }


def event_response(e: Event, assignments: list[EventStakeholder] | None = None) -> dict:
    data = {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "start_time": iso(e.start_time),
        "end_time": iso(e.end_time),
        "location": e.location,
        "owner_id": e.owner_id,
        "owner_name": e.owner_name,
        "status": e.status,
        "priority": e.priority,
        "stakeholder_ids": list(e.stakeholder_ids or []),
        "recurrence_rule": e.recurrence_rule,
        "created_at": iso(e.created_at),
        "updated_at": iso(e.updated_at),
    }
    if assignments is not None:
        data["assignments"] = [assignment_response(a) for a in assignments]
    return data


def _can_edit(event: Event) -> Predicate:
    """Editors, or the owner of the event if they may create events."""
    return Predicate(
        lambda p: EDIT_EVENTS.evaluate(p)
        or (event.owner_id == p.id and p.has(Permission.CREATE_EVENT)),
        name=EDIT_EVENTS.describe(),
        denial_message=HasPermission(Permission.EDIT_EVENT).message(),
    )


def _create_requirements(principal, payload: EventCreatePayload) -> tuple:
    reqs = (permission_or_super(Permission.CREATE_EVENT),)
    if payload.stakeholder_ids:
        reqs += (ASSIGN_STAKEHOLDERS,)
    return reqs


async def _create(ctx: OperationContext, payload: EventCreatePayload) -> dict:
    owner = await ctx.directory.require(ctx.principal.id)
    fields = payload.model_dump(exclude={"stakeholder_ids"}, mode="json")
    fields["start_time"] = payload.start_time
    fields["end_time"] = payload.end_time
    fields["description"] = fields["description"] or ""
    event = await event_service.create_event(
        ctx.db,
        owner=owner,
        fields=fields,
        stakeholder_ids=payload.stakeholder_ids,
        outbox=ctx.outbox,
    )
    return event_response(event, await event_service.list_assignments(ctx.db, event.id))


async def _get(ctx: OperationContext, payload: EventRef) -> dict:
    event = await event_service.get_event(ctx.db, payload.event_id)
    return event_response(event, await event_service.list_assignments(ctx.db, event.id))


async def _list(ctx: OperationContext, payload: EventListPayload) -> list[dict]:
    events = await event_service.list_events(
        ctx.db,
        status=payload.status.value if payload.status else None,
        owner_id=payload.owner_id,
        stakeholder_id=payload.stakeholder_id,
        start_after=payload.start_after,
        start_before=payload.start_before,
    )
    return [event_response(e) for e in events]


async def _check_can_edit(ctx: OperationContext, payload: EventRef) -> None:
    event = await event_service.get_event(ctx.db, payload.event_id)
    require_access(ctx.principal, _can_edit(event))


async def _update(ctx: OperationContext, payload: EventUpdatePayload) -> dict:
    event = await event_service.get_event(ctx.db, payload.event_id)
    fields = payload.model_dump(exclude_unset=True, exclude={"event_id"}, mode="json")
    for key in ("start_time", "end_time"):
        if key in fields:
            fields[key] = getattr(payload, key)
    if fields.get("description") is None and "description" in fields:
        fields["description"] = ""
    event = await event_service.update_event(ctx.db, event, fields)
    return event_response(event)


async def _delete(ctx: OperationContext, payload: EventRef) -> None:
    event = await event_service.get_event(ctx.db, payload.event_id)
    await event_service.delete_event(ctx.db, event)


async def _add_stakeholder(ctx: OperationContext, payload: EventStakeholderPayload) -> dict:
    event = await event_service.get_event(ctx.db, payload.event_id)
    link = await event_service.add_stakeholder(
        ctx.db,
        event,
        payload.stakeholder_id,
        role=payload.role.value if payload.role else None,
        outbox=ctx.outbox,
    )
    return assignment_response(link)


async def _remove_stakeholder(ctx: OperationContext, payload: EventStakeholderPayload) -> dict:
    event = await event_service.get_event(ctx.db, payload.event_id)
    removed = await event_service.remove_stakeholder(ctx.db, event, payload.stakeholder_id)
    return {"removed": removed}


async def _check_can_respond(ctx: OperationContext, payload: EventResponsePayload) -> None:
    stakeholder = await stakeholder_service.get_stakeholder(ctx.db, payload.stakeholder_id)
    require_access(
        ctx.principal,
        Predicate(
            lambda p: stakeholder.linked_user_id == p.id or EDIT_EVENTS.evaluate(p),
            name=EDIT_EVENTS.describe(),
            denial_message="You can only respond on behalf of your own stakeholder record.",
        ),
    )


async def _respond(ctx: OperationContext, payload: EventResponsePayload) -> dict:
    link = await event_service.respond(
        ctx.db, payload.event_id, payload.stakeholder_id, payload.status, payload.response_note
    )
    return assignment_response(link)


CREATE_EVENT = Operation(
    "createEvent", _create, EventCreatePayload, requirements=_create_requirements
)
GET_EVENT = Operation("getEvent", _get, EventRef, requirements=(VIEW_EVENTS,), mutating=False)
LIST_EVENTS = Operation(
    "listEvents", _list, EventListPayload, requirements=(VIEW_EVENTS,), mutating=False
)
UPDATE_EVENT = Operation(
    "updateEvent", _update, EventUpdatePayload, checks=(_check_can_edit,)
)
DELETE_EVENT = Operation(
    "deleteEvent",
    _delete,
    EventRef,
    requirements=(permission_or_super(Permission.DELETE_EVENT),),
)
ADD_STAKEHOLDER_TO_EVENT = Operation(
    "addStakeholderToEvent",
    _add_stakeholder,
    EventStakeholderPayload,
    requirements=(ASSIGN_STAKEHOLDERS,),
)
REMOVE_STAKEHOLDER_FROM_EVENT = Operation(
    "removeStakeholderFromEvent",
    _remove_stakeholder,
    EventStakeholderPayload,
    requirements=(ASSIGN_STAKEHOLDERS,),
)
RESPOND_TO_EVENT = Operation(
    "respondToEvent", _respond, EventResponsePayload, checks=(_check_can_respond,)
)
