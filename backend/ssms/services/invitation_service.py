"""Invitation workflow: invite a stakeholder, validate a token, redeem it into a linked account.

Stakeholder invite fields (``invite_status``, ``invite_token``,
``linked_user_id``) are written only here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ssms.config import Settings, settings as default_settings
from ssms.core.errors import InvalidArgumentError, NotFoundError
from ssms.core.metrics import bg_task_last_success, bg_task_runs_total, invite_redemptions_total
from ssms.core.permissions import Role, parse_role
from ssms.core.security import generate_invite_token
from ssms.models.base import as_utc, utcnow
from ssms.models.invite import Invite
from ssms.models.stakeholder import InviteStatus, Stakeholder
from ssms.services.directory import UserDirectory
from ssms.services.event_bus import Outbox

logger = logging.getLogger(__name__)

NOT_FOUND = "not found"
ALREADY_USED = "already used"
EXPIRED = "expired"

# Role granted when a stakeholder is linked without an invite token
SOFT_FAIL_ROLE = Role.MEMBER


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    reason: str | None = None
    invite: Invite | None = None

    def to_dict(self) -> dict:
        if not self.valid:
            return {"valid": False, "reason": self.reason}
        return {
            "valid": True,
            "email": self.invite.email,
            "stakeholder_id": self.invite.stakeholder_id,
            "default_role": self.invite.default_role,
        }


class InvitationService:
    def __init__(
        self,
        db: AsyncSession,
        outbox: Outbox | None = None,
        *,
        config: Settings = default_settings,
    ) -> None:
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox()
        self.directory = UserDirectory(db, self.outbox)
        self.ttl = timedelta(days=config.INVITE_TTL_DAYS)
        self.soft_fail = config.INVITE_SOFT_FAIL

    async def _stakeholder(self, stakeholder_id: str) -> Stakeholder:
        stakeholder = await self.db.get(Stakeholder, stakeholder_id)
        if stakeholder is None:
            raise NotFoundError("Stakeholder not found")
        return stakeholder

    async def invite(
        self, stakeholder_id: str, default_role: str = Role.MEMBER.value
    ) -> tuple[str, str]:
        """Issue a fresh token for ``stakeholder_id``; earlier tokens stop working."""
        role = parse_role(default_role)
        if role is None:
            raise InvalidArgumentError(f"Invalid role: {default_role}")
        stakeholder = await self._stakeholder(stakeholder_id)
        if stakeholder.linked_user_id:
            raise InvalidArgumentError("Stakeholder is already linked to a user")

        await self.db.execute(
            update(Invite)
            .where(Invite.stakeholder_id == stakeholder.id, Invite.used == False)  # noqa: E712
            .values(used=True)
        )

        now = utcnow()
        token = generate_invite_token()
        self.db.add(
            Invite(
                token=token,
                stakeholder_id=stakeholder.id,
                email=stakeholder.email,
                default_role=role.value,
                created_at=now,
                expires_at=now + self.ttl,
            )
        )
        stakeholder.invite_status = InviteStatus.PENDING.value
        stakeholder.invited_at = now
        stakeholder.invite_token = token
        stakeholder.default_role = role.value
        await self.db.flush()
        logger.info("Stakeholder %s invited with role %s", stakeholder.id, role.value)
        return token, stakeholder.email

    async def check_token(self, token: str, *, now: datetime | None = None) -> TokenCheck:
        invite = await self.db.get(Invite, token)
        if invite is None:
            return TokenCheck(False, NOT_FOUND)
        if invite.used:
            return TokenCheck(False, ALREADY_USED)
        stakeholder = await self.db.get(Stakeholder, invite.stakeholder_id)
        # Superseded by a newer invite or already consumed by a link
        if stakeholder is None or stakeholder.invite_token != token or stakeholder.linked_user_id:
            return TokenCheck(False, ALREADY_USED)
        if as_utc(invite.expires_at) <= (now or utcnow()):
            return TokenCheck(False, EXPIRED)
        return TokenCheck(True, invite=invite)

    async def validate(self, token: str) -> dict:
        """Read-only lookup used by the signup screen."""
        if not token or not token.strip():
            raise InvalidArgumentError("Invite token is required.")
        return (await self.check_token(token.strip())).to_dict()

    async def redeem(self, user_id: str, stakeholder_id: str, token: str | None = None) -> str:
        """Link ``user_id`` to ``stakeholder_id`` and return the granted role.

        All writes land in the caller's transaction. The invite and the
        stakeholder are each claimed with a conditional update, so of two
        concurrent linkers (with or without a token) exactly one succeeds.
        """
        stakeholder = await self._stakeholder(stakeholder_id)
        if stakeholder.linked_user_id:
            invite_redemptions_total.labels(result="rejected").inc()
            raise InvalidArgumentError("Stakeholder is already linked to a user")
        user = await self.directory.require(user_id)
        if user.stakeholder_id and user.stakeholder_id != stakeholder.id:
            invite_redemptions_total.labels(result="rejected").inc()
            raise InvalidArgumentError("User is already linked to another stakeholder")

        token = token.strip() if token else None
        if token is None:
            if not self.soft_fail:
                invite_redemptions_total.labels(result="rejected").inc()
                raise InvalidArgumentError("An invite token is required to link this stakeholder")
            logger.warning(
                "Linking user %s to stakeholder %s without a token; granting %s",
                user_id,
                stakeholder.id,
                SOFT_FAIL_ROLE.value,
            )
            role = SOFT_FAIL_ROLE.value
            result_label = "soft_fail"
        else:
            role = await self._claim(token, stakeholder, user_id)
            result_label = "redeemed"

        await self._claim_stakeholder(stakeholder, user_id)
        await self.directory.link_stakeholder(user_id, stakeholder.id, role)

        invite_redemptions_total.labels(result=result_label).inc()
        logger.info("User %s linked to stakeholder %s as %s", user_id, stakeholder.id, role)
        return role

    async def _claim(self, token: str, stakeholder: Stakeholder, user_id: str) -> str:
        check = await self.check_token(token)
        if check.valid and check.invite.stakeholder_id != stakeholder.id:
            check = TokenCheck(False, NOT_FOUND)
        if not check.valid:
            invite_redemptions_total.labels(result="rejected").inc()
            raise InvalidArgumentError(f"Invite token is invalid: {check.reason}")

        claimed = await self.db.execute(
            update(Invite)
            .where(Invite.token == token, Invite.used == False)  # noqa: E712
            .values(used=True, used_by=user_id, used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            invite_redemptions_total.labels(result="rejected").inc()
            raise InvalidArgumentError(f"Invite token is invalid: {ALREADY_USED}")
        return check.invite.default_role

    async def _claim_stakeholder(self, stakeholder: Stakeholder, user_id: str) -> None:
        claimed = await self.db.execute(
            update(Stakeholder)
            .where(Stakeholder.id == stakeholder.id, Stakeholder.linked_user_id.is_(None))
            .values(
                linked_user_id=user_id,
                invite_status=InviteStatus.ACCEPTED.value,
                invite_token=None,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            invite_redemptions_total.labels(result="rejected").inc()
            raise InvalidArgumentError("Stakeholder is already linked to a user")
        await self.db.refresh(stakeholder)

    async def release_user(self, user_id: str) -> int:
        """Unlink every stakeholder held by ``user_id`` (used when the user is deleted)."""
        result = await self.db.execute(
            select(Stakeholder).where(Stakeholder.linked_user_id == user_id)
        )
        stakeholders = result.scalars().all()
        for stakeholder in stakeholders:
            stakeholder.linked_user_id = None
            stakeholder.invite_status = InviteStatus.NOT_INVITED.value
        await self.db.flush()
        return len(stakeholders)

    async def expire_stale_invites(self, now: datetime | None = None) -> int:
        """Mark pending stakeholders whose current invite has lapsed as expired."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Stakeholder, Invite)
            .join(Invite, Invite.token == Stakeholder.invite_token)
            .where(
                Stakeholder.invite_status == InviteStatus.PENDING.value,
                Invite.used == False,  # noqa: E712
            )
        )
        expired = 0
        for stakeholder, invite in result.all():
            if as_utc(invite.expires_at) <= now:
                stakeholder.invite_status = InviteStatus.EXPIRED.value
                expired += 1
        await self.db.flush()
        if expired:
            logger.info("Marked %d stale invite(s) as expired", expired)
        return expired


async def invite_sweep_loop(
    session_factory: async_sessionmaker, interval_seconds: int
) -> None:
    """Background task: periodically run ``expire_stale_invites``."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_factory() as db:
                await InvitationService(db).expire_stale_invites()
                await db.commit()
            bg_task_runs_total.labels(task_name="invite_sweep", status="success").inc()
            bg_task_last_success.labels(task_name="invite_sweep").set_to_current_time()
        except Exception:
            bg_task_runs_total.labels(task_name="invite_sweep", status="error").inc()
            logger.exception("Invite expiry sweep failed")
