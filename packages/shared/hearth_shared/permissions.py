"""
Role-based permissions for group-scoped data.

Each Role maps to a fixed set of capabilities. The mapping is checked at import
time to cover every role, so adding a Role without a permission entry fails
immediately.
"""

from __future__ import annotations

from enum import Enum

from .schemas.common import ROLE_ORDER, Role


class Capability(str, Enum):
    VIEW_GROUP = "view_group"
    VIEW_MEMBERS = "view_members"
    MANAGE_GROUP = "manage_group"
    DELETE_GROUP = "delete_group"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_ROLES = "manage_roles"
    MANAGE_ROOMS = "manage_rooms"
    MANAGE_CATEGORIES = "manage_categories"
    MANAGE_ITEMS = "manage_items"
    MOVE_ITEMS = "move_items"
    SET_WATERMARK = "set_watermark"
    MANAGE_BUILDINGS = "manage_buildings"
    MANAGE_WORKING_GROUPS = "manage_working_groups"


_ALL = frozenset(Capability)

_HOUSEHOLD_EDITOR = frozenset({
    Capability.VIEW_GROUP,
    Capability.VIEW_MEMBERS,
    Capability.MANAGE_MEMBERS,
    Capability.MANAGE_ROOMS,
    Capability.MANAGE_CATEGORIES,
    Capability.MANAGE_ITEMS,
    Capability.MOVE_ITEMS,
    Capability.SET_WATERMARK,
})

ROLE_PERMISSIONS: dict[Role, frozenset[Capability]] = {
    Role.OWNER: _ALL,
    Role.ADMIN: _ALL - {Capability.DELETE_GROUP},
    Role.MANAGER: frozenset({
        Capability.VIEW_GROUP,
        Capability.VIEW_MEMBERS,
        Capability.MANAGE_MEMBERS,
        Capability.MANAGE_ROLES,
        Capability.MANAGE_ROOMS,
        Capability.MANAGE_CATEGORIES,
        Capability.MANAGE_ITEMS,
        Capability.MOVE_ITEMS,
        Capability.MANAGE_BUILDINGS,
        Capability.MANAGE_WORKING_GROUPS,
    }),
    Role.USER: _HOUSEHOLD_EDITOR,
    Role.MEMBER: frozenset({Capability.VIEW_GROUP, Capability.VIEW_MEMBERS}),
    Role.VIEWER: frozenset({Capability.VIEW_GROUP}),
    Role.VISITOR: frozenset({
        Capability.VIEW_GROUP,
        Capability.MANAGE_ITEMS,
        Capability.MOVE_ITEMS,
    }),
}

_missing = set(Role) - set(ROLE_PERMISSIONS)
if _missing:
    raise RuntimeError(f"Roles without permissions: {sorted(r.value for r in _missing)}")

# Higher number = more authority. MEMBER and USER share a rank, as do VIEWER and VISITOR.
ROLE_LEVELS: dict[Role, int] = {
    Role.OWNER: 5,
    Role.ADMIN: 4,
    Role.MANAGER: 3,
    Role.USER: 2,
    Role.MEMBER: 2,
    Role.VIEWER: 1,
    Role.VISITOR: 1,
}


def derive_permissions(role: Role | str) -> frozenset[Capability]:
    """Return the capability set granted by ``role``."""
    return ROLE_PERMISSIONS[Role(role)]


def has_permission(role: Role | str, capability: Capability) -> bool:
    return capability in derive_permissions(role)


def role_level(role: Role | str) -> int:
    return ROLE_LEVELS[Role(role)]


def can_manage_role(manager_role: Role | str, target_role: Role | str) -> bool:
    """
    Whether a member holding ``manager_role`` may grant or revoke ``target_role``.

    Requires MANAGE_ROLES and a strictly higher rank; an OWNER may also manage
    other OWNERs.
    """
    manager_role = Role(manager_role)
    target_role = Role(target_role)
    if not has_permission(manager_role, Capability.MANAGE_ROLES):
        return False
    if manager_role is Role.OWNER:
        return True
    return role_level(target_role) < role_level(manager_role)


def assignable_roles(manager_role: Role | str) -> list[Role]:
    return [r for r in ROLE_ORDER if can_manage_role(manager_role, r)]
