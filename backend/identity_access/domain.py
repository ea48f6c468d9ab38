"""
Identity domain constants and the request principal.

Why:
- Centralize the closed set of roles so tokens, guards and routes agree.
- Keep the principal immutable; it is built once per request and discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Account roles. Closed and mutually exclusive: one per principal."""

    ADMIN = "ADMIN"
    INSTRUCTOR = "INSTRUCTOR"
    STUDENT = "STUDENT"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Parse a role claim. Only the exact enum values are accepted.

        A role is never inferred or normalised; there is no default.
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str) or not value:
            raise ValueError("invalid_role")
        try:
            return cls(value)
        except ValueError:
            raise ValueError("invalid_role") from None


ALLOWED_ROLES = frozenset(r.value for r in Role)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of the current request."""

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


__all__ = ["ALLOWED_ROLES", "Principal", "Role"]
