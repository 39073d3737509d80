"""Deterministic choice of the active membership."""

from __future__ import annotations

from typing import Sequence

from hearth_shared.schemas.memberships import Membership


def select_active(
    memberships: Sequence[Membership],
    preferred_group_id: str | None,
) -> Membership | None:
    """
    Pick the membership to make active.

    The membership whose group matches ``preferred_group_id`` wins; otherwise the
    first membership in server order. Returns None for an empty sequence.
    """
    if not memberships:
        return None
    if preferred_group_id is not None:
        for membership in memberships:
            if membership.group.group_id == preferred_group_id:
                return membership
    return memberships[0]
