"""
Membership schemas shared between the context core and the membership API.

Covers: Group, Membership, and the membership list envelope. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import Role


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Group(_WireModel):
    """A household, building team or community team."""

    group_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    created_at: datetime


class Membership(_WireModel):
    membership_id: str = Field(min_length=1)
    role: Role
    joined_at: Optional[datetime] = None
    group: Group


class MembershipListResponse(_WireModel):
    memberships: list[Membership] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "MembershipListResponse":
        """Accept either the ``{"memberships": [...]}`` envelope or a bare list."""
        if isinstance(payload, list):
            payload = {"memberships": payload}
        return cls.model_validate(payload)
