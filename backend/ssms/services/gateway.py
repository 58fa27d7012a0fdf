"""Mutating-operation gateway.

Every privileged operation runs through ``Gateway.perform``:

1. resolve the caller into a fresh ``Principal`` (missing/inactive -> unauthenticated)
2. validate the payload model (-> invalid-argument)
3. evaluate the operation's requirements with the guard (-> permission-denied)
4. run operation checks (self-targeting bans, role validity)
5. run the handler, commit once, then publish staged bus messages

Classified errors roll back and propagate unchanged. Anything else rolls
back, is logged with its traceback and surfaces as an opaque internal error.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.config import Settings, settings as default_settings
from ssms.core.errors import (
    InternalError,
    InvalidArgumentError,
    SSMSError,
    UnauthenticatedError,
    describe_validation_error,
)
from ssms.core.guard import Principal, Requirement, require_access
from ssms.core.metrics import operations_total
from ssms.services.directory import UserDirectory
from ssms.services.event_bus import EventBus, Outbox
from ssms.services.invitation_service import InvitationService

logger = logging.getLogger(__name__)


@dataclass
class OperationContext:
    """What a handler gets to work with: the caller, the session and the outbox."""

    principal: Principal
    db: AsyncSession
    outbox: Outbox
    config: Settings = default_settings

    @property
    def directory(self) -> UserDirectory:
        return UserDirectory(self.db, self.outbox)

    @property
    def invitations(self) -> InvitationService:
        return InvitationService(self.db, self.outbox, config=self.config)


Handler = Callable[[OperationContext, Any], Awaitable[Any]]
Check = Callable[[OperationContext, Any], Awaitable[None]]
RequirementsFn = Callable[[Principal, Any], Sequence[Requirement]]


@dataclass(frozen=True)
class Operation:
    name: str
    handler: Handler
    payload_model: type[BaseModel] | None = None
    # Either a fixed tuple or a function of (principal, payload)
    requirements: tuple[Requirement, ...] | RequirementsFn = ()
    checks: tuple[Check, ...] = field(default_factory=tuple)
    mutating: bool = True

    def requirements_for(self, principal: Principal, payload: Any) -> Sequence[Requirement]:
        if callable(self.requirements):
            return self.requirements(principal, payload)
        return self.requirements


class Gateway:
    def __init__(
        self,
        db: AsyncSession,
        bus: EventBus | None = None,
        *,
        config: Settings = default_settings,
    ) -> None:
        self.db = db
        self.bus = bus
        self.config = config

    async def perform(self, principal_id: str | None, operation: Operation, payload: Any = None):
        outcome = "ok"
        try:
            return await self._run(principal_id, operation, payload)
        except SSMSError as exc:
            outcome = exc.code
            raise
        finally:
            operations_total.labels(operation=operation.name, outcome=outcome).inc()

    async def _run(self, principal_id: str | None, operation: Operation, payload: Any):
        outbox = Outbox(self.bus)
        try:
            principal = await self._resolve(principal_id)
            data = self._validate(operation, payload)
            try:
                require_access(principal, *operation.requirements_for(principal, data))
            except SSMSError as exc:
                logger.info(
                    "Denied %s for %s: %s",
                    operation.name,
                    principal.id,
                    exc.requirement,
                    extra={"principal_id": principal.id, "operation": operation.name},
                )
                raise
            ctx = OperationContext(principal=principal, db=self.db, outbox=outbox, config=self.config)
            for check in operation.checks:
                await check(ctx, data)
            result = await operation.handler(ctx, data)
            if operation.mutating:
                await self.db.commit()
        except SSMSError:
            outbox.discard()
            await self.db.rollback()
            raise
        except Exception as exc:
            outbox.discard()
            await self.db.rollback()
            logger.exception(
                "Operation %s failed",
                operation.name,
                extra={"principal_id": principal_id, "operation": operation.name},
            )
            raise InternalError() from exc

        if operation.mutating:
            logger.info(
                "%s performed by %s",
                operation.name,
                principal.id,
                extra={"principal_id": principal.id, "operation": operation.name},
            )
        await outbox.flush()
        return result

    async def _resolve(self, principal_id: str | None) -> Principal:
        principal = await UserDirectory(self.db).resolve_principal(principal_id)
        if principal is None or not principal.is_active:
            raise UnauthenticatedError()
        return principal

    @staticmethod
    def _validate(operation: Operation, payload: Any) -> Any:
        if operation.payload_model is None:
            return payload
        if isinstance(payload, operation.payload_model):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_unset=True)
        try:
            return operation.payload_model.model_validate(payload or {})
        except ValidationError as exc:
            raise InvalidArgumentError(describe_validation_error(exc.errors())) from exc
