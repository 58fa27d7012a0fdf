"""Permission catalog: the single source of truth for roles and their default grants.

Clients fetch this catalog from ``GET /api/v1/roles/catalog`` rather than
keeping their own copy, so the mapping below is the only one that exists.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable


class Permission(str, enum.Enum):
    # Events
    CREATE_EVENT = "createEvent"
    EDIT_EVENT = "editEvent"
    DELETE_EVENT = "deleteEvent"
    VIEW_EVENT = "viewEvent"
    # Stakeholders
    CREATE_STAKEHOLDER = "createStakeholder"
    EDIT_STAKEHOLDER = "editStakeholder"
    DELETE_STAKEHOLDER = "deleteStakeholder"
    VIEW_STAKEHOLDER = "viewStakeholder"
    ASSIGN_STAKEHOLDER = "assignStakeholder"
    INVITE_STAKEHOLDER = "inviteStakeholder"
    # Administration
    MANAGE_USERS = "manageUsers"
    VIEW_REPORTS = "viewReports"
    EDIT_SETTINGS = "editSettings"
    # Super permissions
    ADMIN = "admin"
    ROOT = "root"


class Role(str, enum.Enum):
    ROOT = "root"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"


# Least-privileged role; also the fallback for unknown role values
DEFAULT_ROLE = Role.VIEWER

ROLE_LEVELS: dict[Role, int] = {
    Role.ROOT: 5,
    Role.ADMIN: 4,
    Role.MANAGER: 3,
    Role.MEMBER: 2,
    Role.VIEWER: 1,
}

PERMISSION_LABELS: dict[Permission, str] = {
    Permission.CREATE_EVENT: "Create Events",
    Permission.EDIT_EVENT: "Edit Events",
    Permission.DELETE_EVENT: "Delete Events",
    Permission.VIEW_EVENT: "View Events",
    Permission.CREATE_STAKEHOLDER: "Create Stakeholders",
    Permission.EDIT_STAKEHOLDER: "Edit Stakeholders",
    Permission.DELETE_STAKEHOLDER: "Delete Stakeholders",
    Permission.VIEW_STAKEHOLDER: "View Stakeholders",
    Permission.ASSIGN_STAKEHOLDER: "Assign Stakeholders",
    Permission.INVITE_STAKEHOLDER: "Invite Stakeholders",
    Permission.MANAGE_USERS: "Manage Users",
    Permission.VIEW_REPORTS: "View Reports",
    Permission.EDIT_SETTINGS: "Edit Settings",
    Permission.ADMIN: "Administrator Access",
    Permission.ROOT: "Root Access",
}

ROLE_LABELS: dict[Role, dict[str, str]] = {
    Role.ROOT: {"label": "Root", "description": "System-level access, including settings"},
    Role.ADMIN: {"label": "Administrator", "description": "Full access to all features and settings"},
    Role.MANAGER: {
        "label": "Manager",
        "description": "Can manage events, stakeholders, invitations, and view reports",
    },
    Role.MEMBER: {"label": "Member", "description": "Can create and edit events, view stakeholders"},
    Role.VIEWER: {"label": "Viewer", "description": "Read-only access to events and stakeholders"},
}

_EVENT_CRUD = [
    Permission.CREATE_EVENT,
    Permission.EDIT_EVENT,
    Permission.DELETE_EVENT,
    Permission.VIEW_EVENT,
]

_STAKEHOLDER_CRUD = [
    Permission.CREATE_STAKEHOLDER,
    Permission.EDIT_STAKEHOLDER,
    Permission.DELETE_STAKEHOLDER,
    Permission.VIEW_STAKEHOLDER,
]

# ---------------------------------------------------------------------------
# Default permission sets per role (ordered)
# ---------------------------------------------------------------------------

ROOT_PERMISSIONS: tuple[Permission, ...] = tuple(Permission)

ADMIN_PERMISSIONS: tuple[Permission, ...] = tuple(p for p in Permission if p is not Permission.ROOT)

MANAGER_PERMISSIONS: tuple[Permission, ...] = (
    *_EVENT_CRUD,
    *_STAKEHOLDER_CRUD,
    Permission.ASSIGN_STAKEHOLDER,
    Permission.INVITE_STAKEHOLDER,
    Permission.VIEW_REPORTS,
)

MEMBER_PERMISSIONS: tuple[Permission, ...] = (
    Permission.CREATE_EVENT,
    Permission.EDIT_EVENT,
    Permission.VIEW_EVENT,
    Permission.VIEW_STAKEHOLDER,
    Permission.ASSIGN_STAKEHOLDER,
)

VIEWER_PERMISSIONS: tuple[Permission, ...] = (
    Permission.VIEW_EVENT,
    Permission.VIEW_STAKEHOLDER,
)

DEFAULT_PERMISSIONS_BY_ROLE: dict[Role, tuple[Permission, ...]] = {
    Role.ROOT: ROOT_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.MANAGER: MANAGER_PERMISSIONS,
    Role.MEMBER: MEMBER_PERMISSIONS,
    Role.VIEWER: VIEWER_PERMISSIONS,
}

# Permissions that grant every CRUD capability on their own
SUPER_PERMISSIONS: tuple[Permission, ...] = (Permission.ADMIN, Permission.ROOT)


def parse_role(value: Role | str | None) -> Role | None:
    """Return the Role for ``value``, or None when it is not a known role."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def is_valid_role(value: Role | str | None) -> bool:
    return parse_role(value) is not None


def role_level(value: Role | str | None) -> int:
    """Numeric level for minimum-role checks. Unknown roles rank below viewer."""
    role = parse_role(value)
    return ROLE_LEVELS[role] if role else 0


def default_permissions_for(role: Role | str | None) -> list[Permission]:
    """Default permission list for ``role``.

    Total over any input: unknown or unparseable values get the viewer set,
    since this runs for every new account and must never fail.
    """
    parsed = parse_role(role) or DEFAULT_ROLE
    return list(DEFAULT_PERMISSIONS_BY_ROLE[parsed])


def parse_permissions(values: Iterable[Permission | str]) -> list[Permission]:
    """Validate and de-duplicate a permission list, keeping first-seen order.

    Raises ValueError naming every unknown key.
    """
    result: list[Permission] = []
    unknown: list[str] = []
    for value in values:
        try:
            perm = value if isinstance(value, Permission) else Permission(value)
        except ValueError:
            unknown.append(str(value))
            continue
        if perm not in result:
            result.append(perm)
    if unknown:
        raise ValueError(f"Unknown permission keys: {', '.join(sorted(unknown))}")
    return result


def display_role(permissions: Iterable[Permission | str]) -> str:
    """Label for the highest capability present in a permission list."""
    perms = {p.value if isinstance(p, Permission) else p for p in permissions}
    if Permission.ROOT.value in perms:
        return "Root"
    if Permission.ADMIN.value in perms:
        return "Admin"
    if Permission.MANAGE_USERS.value in perms:
        return "Manager"
    writes = {p.value for p in (*_EVENT_CRUD[:3], *_STAKEHOLDER_CRUD[:3])}
    if perms & writes:
        return "Member"
    if perms & {Permission.VIEW_EVENT.value, Permission.VIEW_STAKEHOLDER.value}:
        return "Viewer"
    return "User"


def catalog_document() -> dict:
    """Serializable form of the catalog, served to clients."""
    return {
        "permissions": [
            {"key": p.value, "label": PERMISSION_LABELS[p]} for p in Permission
        ],
        "roles": [
            {
                "key": role.value,
                "level": ROLE_LEVELS[role],
                "label": ROLE_LABELS[role]["label"],
                "description": ROLE_LABELS[role]["description"],
                "default_permissions": [p.value for p in DEFAULT_PERMISSIONS_BY_ROLE[role]],
            }
            for role in Role
        ],
        "default_role": DEFAULT_ROLE.value,
    }
