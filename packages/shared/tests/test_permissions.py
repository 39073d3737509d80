"""Tests for role permissions and the role hierarchy."""

import pytest

from hearth_shared.permissions import (
    ROLE_PERMISSIONS,
    Capability,
    assignable_roles,
    can_manage_role,
    derive_permissions,
    has_permission,
    role_level,
)
from hearth_shared.schemas.common import Role


def test_every_role_has_permissions():
    assert set(ROLE_PERMISSIONS) == set(Role)
    for role in Role:
        assert Capability.VIEW_GROUP in derive_permissions(role)


def test_owner_has_everything():
    assert derive_permissions(Role.OWNER) == frozenset(Capability)


def test_only_owner_deletes_group():
    holders = {r for r in Role if has_permission(r, Capability.DELETE_GROUP)}
    assert holders == {Role.OWNER}


def test_household_roles():
    assert has_permission(Role.USER, Capability.MANAGE_MEMBERS)
    assert not has_permission(Role.USER, Capability.MANAGE_ROLES)
    assert has_permission(Role.VISITOR, Capability.MOVE_ITEMS)
    assert not has_permission(Role.VISITOR, Capability.MANAGE_ROOMS)


def test_community_roles():
    assert has_permission(Role.MANAGER, Capability.MANAGE_BUILDINGS)
    assert not has_permission(Role.MANAGER, Capability.MANAGE_GROUP)
    assert derive_permissions(Role.MEMBER) == {Capability.VIEW_GROUP, Capability.VIEW_MEMBERS}
    assert derive_permissions(Role.VIEWER) == {Capability.VIEW_GROUP}


def test_accepts_role_strings():
    assert derive_permissions("ADMIN") == derive_permissions(Role.ADMIN)


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        derive_permissions("SUPERUSER")


def test_role_levels():
    assert role_level(Role.OWNER) > role_level(Role.ADMIN) > role_level(Role.MANAGER)
    assert role_level(Role.USER) == role_level(Role.MEMBER)
    assert role_level(Role.VISITOR) == 1


def test_can_manage_role():
    assert can_manage_role(Role.OWNER, Role.OWNER)
    assert can_manage_role(Role.ADMIN, Role.MANAGER)
    assert not can_manage_role(Role.ADMIN, Role.ADMIN)
    assert not can_manage_role(Role.MANAGER, Role.ADMIN)
    assert not can_manage_role(Role.USER, Role.VISITOR)


def test_assignable_roles():
    assert assignable_roles(Role.OWNER) == list(Role)
    assert assignable_roles(Role.MANAGER) == [
        Role.USER, Role.MEMBER, Role.VIEWER, Role.VISITOR,
    ]
    assert assignable_roles(Role.VISITOR) == []
