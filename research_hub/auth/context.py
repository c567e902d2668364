"""
Principal - the "who" of each request.

This is the lightweight object resolved from a credential and passed to the
policy. It lives for exactly one request and is never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from research_hub.core.models import Role, User


@dataclass(frozen=True)
class Principal:
    """
    The resolved identity making a request.

    trusted=True marks an identity built straight from pre-trusted token
    claims: role and department were never checked against the store and
    may be stale. Policy decisions treat it like any other principal; the
    flag is there so callers can tell the two sources apart.
    """

    user_id: str
    role: Role
    name: str = ""
    email: str | None = None
    department: str = ""
    trusted: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_research_lead(self) -> bool:
        return self.role == Role.RESEARCH_LEAD

    @classmethod
    def from_user(cls, user: User) -> Principal:
        """Principal for a store-verified user record."""
        return cls(
            user_id=user.id,
            role=user.role,
            name=user.name,
            email=user.email,
            department=user.department,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "role": self.role.value,
            "name": self.name,
            "email": self.email,
            "department": self.department,
            "trusted": self.trusted,
        }
