"""Authorization guard: a pure allow/deny decision over a principal snapshot.

No I/O happens here. Callers resolve the principal first (see
``services.directory``) and hand the guard an immutable ``Principal``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ssms.core.errors import PermissionDeniedError
from ssms.core.permissions import (
    PERMISSION_LABELS,
    ROLE_LABELS,
    SUPER_PERMISSIONS,
    Permission,
    Role,
    role_level,
)


@dataclass(frozen=True)
class Principal:
    id: str
    role: str
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    is_active: bool = True
    stakeholder_id: str | None = None

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions


class Requirement:
    def evaluate(self, principal: Principal) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        """Machine-readable name of the requirement, returned with a denial."""
        raise NotImplementedError

    def message(self) -> str:
        """User-facing explanation of a denial."""
        raise NotImplementedError


@dataclass(frozen=True)
class HasPermission(Requirement):
    permission: Permission

    def evaluate(self, principal: Principal) -> bool:
        return principal.has(self.permission)

    def describe(self) -> str:
        return self.permission.value

    def message(self) -> str:
        return f"You need the '{PERMISSION_LABELS[self.permission]}' permission to do this."


@dataclass(frozen=True)
class AllOf(Requirement):
    permissions: tuple[Permission, ...]

    def __init__(self, *permissions: Permission) -> None:
        object.__setattr__(self, "permissions", tuple(permissions))

    def evaluate(self, principal: Principal) -> bool:
        return all(principal.has(p) for p in self.permissions)

    def describe(self) -> str:
        return "all of: " + ", ".join(p.value for p in self.permissions)

    def message(self) -> str:
        labels = ", ".join(PERMISSION_LABELS[p] for p in self.permissions)
        return f"You need all of these permissions to do this: {labels}."


@dataclass(frozen=True)
class AnyOf(Requirement):
    permissions: tuple[Permission, ...]

    def __init__(self, *permissions: Permission) -> None:
        object.__setattr__(self, "permissions", tuple(permissions))

    def evaluate(self, principal: Principal) -> bool:
        return any(principal.has(p) for p in self.permissions)

    def describe(self) -> str:
        return "any of: " + ", ".join(p.value for p in self.permissions)

    def message(self) -> str:
        labels = ", ".join(PERMISSION_LABELS[p] for p in self.permissions)
        return f"You need one of these permissions to do this: {labels}."


@dataclass(frozen=True)
class MinRole(Requirement):
    role: Role

    def evaluate(self, principal: Principal) -> bool:
        return role_level(principal.role) >= role_level(self.role)

    def describe(self) -> str:
        return f"role >= {self.role.value}"

    def message(self) -> str:
        return f"This requires the {ROLE_LABELS[self.role]['label']} role or higher."


@dataclass(frozen=True)
class Predicate(Requirement):
    """Escape hatch for checks that don't reduce to permissions."""

    check: Callable[[Principal], bool]
    name: str
    denial_message: str = "You are not allowed to do this."

    def evaluate(self, principal: Principal) -> bool:
        return bool(self.check(principal))

    def describe(self) -> str:
        return self.name

    def message(self) -> str:
        return self.denial_message


def permission_or_super(permission: Permission) -> AnyOf:
    """``permission`` itself, or admin/root which imply every CRUD permission."""
    return AnyOf(permission, *SUPER_PERMISSIONS)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    failed: Requirement | None = None

    @property
    def requirement(self) -> str | None:
        return self.failed.describe() if self.failed else None

    @property
    def reason(self) -> str | None:
        return self.failed.message() if self.failed else None


ALLOW = Decision(allowed=True)


def check_access(principal: Principal, *requirements: Requirement) -> Decision:
    """Evaluate ``requirements`` (AND) and report the first one that fails."""
    for requirement in requirements:
        if not requirement.evaluate(principal):
            return Decision(allowed=False, failed=requirement)
    return ALLOW


def require_access(principal: Principal, *requirements: Requirement) -> None:
    """Raise PermissionDeniedError unless every requirement holds."""
    decision = check_access(principal, *requirements)
    if not decision.allowed:
        raise PermissionDeniedError(decision.reason, requirement=decision.requirement)
