"""User/Role directory: accounts, roles and the principal snapshots the guard reads."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ssms.core.errors import InvalidArgumentError, NotFoundError
from ssms.core.guard import Principal
from ssms.core.permissions import (
    DEFAULT_ROLE,
    Permission,
    default_permissions_for,
    parse_permissions,
    parse_role,
)
from ssms.core.security import hash_password
from ssms.models.base import utcnow
from ssms.models.user import User
from ssms.services.event_bus import Outbox

logger = logging.getLogger(__name__)


def _stored_permissions(values: list | None) -> frozenset[Permission]:
    perms = set()
    for value in values or []:
        try:
            perms.add(Permission(value))
        except ValueError:
            logger.warning("Ignoring unknown stored permission %r", value)
    return frozenset(perms)


def principal_from_user(user: User) -> Principal:
    return Principal(
        id=user.id,
        role=user.role,
        permissions=_stored_permissions(user.permissions),
        is_active=bool(user.is_active),
        stakeholder_id=user.stakeholder_id,
    )


def _validated_role(role: str) -> str:
    parsed = parse_role(role)
    if parsed is None:
        raise InvalidArgumentError(f"Invalid role: {role}")
    return parsed.value


def _validated_permissions(permissions: list[str]) -> list[str]:
    try:
        return [p.value for p in parse_permissions(permissions)]
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc


def _assign_role(user: User, role: str, permissions: list[str] | None = None) -> None:
    role_value = _validated_role(role)
    perm_values = (
        _validated_permissions(permissions)
        if permissions is not None
        else [p.value for p in default_permissions_for(role_value)]
    )
    user.role = role_value
    # JSON columns are replaced, never mutated in place
    user.permissions = perm_values


class UserDirectory:
    """Reads and writes user records within the caller's session.

    Every state change stages a ``principal.updated`` message on the outbox,
    so observers see it only once the surrounding transaction commits.
    """

    def __init__(self, db: AsyncSession, outbox: Outbox | None = None) -> None:
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox()

    # -- reads --------------------------------------------------------------

    async def get(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def require(self, user_id: str) -> User:
        user = await self.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def resolve_principal(self, user_id: str | None) -> Principal | None:
        """Fresh snapshot for ``user_id``, or None if no such user exists."""
        if not user_id:
            return None
        user = await self.get(user_id)
        return principal_from_user(user) if user else None

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.display_name, User.email))
        return list(result.scalars().all())

    async def count(self) -> int:
        return (await self.db.execute(select(func.count(User.id)))).scalar_one()

    # -- writes -------------------------------------------------------------

    async def create_user(
        self,
        *,
        email: str,
        display_name: str,
        password: str | None = None,
        role: str | None = None,
        permissions: list[str] | None = None,
    ) -> User:
        """Create an account. Role defaults to the least-privileged one."""
        email = email.strip().lower()
        if await self.get_by_email(email):
            raise InvalidArgumentError("A user with this email already exists")

        role_value = _validated_role(role) if role is not None else DEFAULT_ROLE.value
        perm_values = (
            _validated_permissions(permissions)
            if permissions is not None
            else [p.value for p in default_permissions_for(role_value)]
        )
        user = User(
            email=email,
            display_name=display_name,
            password_hash=hash_password(password) if password else None,
            role=role_value,
            permissions=perm_values,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        logger.info("Created user %s with role %s", user.id, role_value)
        self._stage(user)
        return user

    async def apply_role_change(
        self, user_id: str, role: str, permissions: list[str] | None = None
    ) -> User:
        """Set ``role``; permissions default to the role's set when omitted."""
        user = await self.require(user_id)
        _assign_role(user, role, permissions)
        await self.db.flush()
        logger.info("Role of user %s set to %s", user.id, user.role)
        self._stage(user)
        return user

    async def set_active(self, user_id: str, is_active: bool) -> User:
        user = await self.require(user_id)
        user.is_active = is_active
        await self.db.flush()
        logger.info("User %s %s", user.id, "activated" if is_active else "deactivated")
        self._stage(user)
        return user

    async def update_profile(
        self,
        user_id: str,
        *,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> User:
        user = await self.require(user_id)
        if display_name is not None:
            user.display_name = display_name
        if photo_url is not None:
            user.photo_url = photo_url or None
        await self.db.flush()
        self._stage(user)
        return user

    async def link_stakeholder(self, user_id: str, stakeholder_id: str, role: str) -> User:
        """Attach a stakeholder record and grant ``role`` with its defaults."""
        user = await self.require(user_id)
        _assign_role(user, role)
        user.stakeholder_id = stakeholder_id
        await self.db.flush()
        logger.info("Linked user %s to stakeholder %s as %s", user.id, stakeholder_id, user.role)
        self._stage(user)
        return user

    async def release_stakeholder(self, stakeholder_id: str) -> None:
        """Clear the back-reference from whichever user holds ``stakeholder_id``."""
        result = await self.db.execute(select(User).where(User.stakeholder_id == stakeholder_id))
        for user in result.scalars().all():
            user.stakeholder_id = None
            self._stage(user)
        await self.db.flush()

    async def record_login(self, user: User) -> None:
        user.last_login_at = utcnow()
        await self.db.flush()

    async def delete_user(self, user_id: str) -> None:
        """Remove the user row. Callers clean up dependent records first."""
        user = await self.require(user_id)
        await self.db.delete(user)
        await self.db.flush()
        logger.info("Deleted user %s", user_id)
        self.outbox.stage("principal.deleted", {"id": user_id}, user_id=user_id)

    def _stage(self, user: User) -> None:
        self.outbox.stage("principal.updated", user_snapshot(user), user_id=user.id)


def user_snapshot(user: User) -> dict:
    return {
        "id": user.id,
        "role": user.role,
        "permissions": list(user.permissions or []),
        "is_active": bool(user.is_active),
        "stakeholder_id": user.stakeholder_id,
    }
