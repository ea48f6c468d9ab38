"""
Allow/Deny values returned by every access guard.

Why:
    Guards return decisions instead of calling a continuation or raising. The
    composition layer folds over a list and stops at the first denial, and
    each guard stays unit-testable on its own.

Taxonomy (status codes are fixed per kind):
    - UNAUTHENTICATED (401): no resolvable principal.
    - FORBIDDEN_ROLE (403): principal's role is not accepted.
    - FORBIDDEN_OWNERSHIP (403): self-ownership or lesson linkage failed.
    - NOT_FOUND (404): referenced resource does not exist.
    - MALFORMED_REQUEST (400): required identifier absent from its source.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class DenyKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN_ROLE = "forbidden_role"
    FORBIDDEN_OWNERSHIP = "forbidden_ownership"
    NOT_FOUND = "not_found"
    MALFORMED_REQUEST = "bad_request"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND: Dict[DenyKind, int] = {
    DenyKind.UNAUTHENTICATED: 401,
    DenyKind.FORBIDDEN_ROLE: 403,
    DenyKind.FORBIDDEN_OWNERSHIP: 403,
    DenyKind.NOT_FOUND: 404,
    DenyKind.MALFORMED_REQUEST: 400,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    status_code: int = 200
    message: str = ""
    kind: Optional[DenyKind] = None

    @property
    def denied(self) -> bool:
        return not self.allowed

    def to_body(self) -> Dict[str, str]:
        """JSON body for a denial: always carries `message`."""
        if self.allowed:
            return {}
        return {"error": self.kind.value if self.kind else "forbidden", "message": self.message}


ALLOW = Decision(allowed=True)


def deny(kind: DenyKind, message: str) -> Decision:
    return Decision(allowed=False, status_code=kind.status_code, message=message, kind=kind)


# Shared denials; messages name the failed check without echoing identifiers.
AUTHENTICATION_REQUIRED = deny(DenyKind.UNAUTHENTICATED, "authentication required")
INSUFFICIENT_ROLE = deny(DenyKind.FORBIDDEN_ROLE, "insufficient role")
ROLE_NOT_AUTHORIZED = deny(DenyKind.FORBIDDEN_ROLE, "role not authorized")
INSTRUCTORS_ONLY = deny(DenyKind.FORBIDDEN_ROLE, "instructors only")
NOT_YOUR_OWN_DATA = deny(DenyKind.FORBIDDEN_OWNERSHIP, "not your own data")
NO_INSTRUCTOR_PROFILE = deny(DenyKind.FORBIDDEN_OWNERSHIP, "no instructor profile")
NO_STUDENT_PROFILE = deny(DenyKind.FORBIDDEN_OWNERSHIP, "no student profile")
STUDENT_NOT_ASSIGNED = deny(DenyKind.FORBIDDEN_OWNERSHIP, "student not assigned")
MISSING_STUDENT_ID = deny(DenyKind.MALFORMED_REQUEST, "missing student id")


__all__ = [
    "ALLOW",
    "AUTHENTICATION_REQUIRED",
    "Decision",
    "DenyKind",
    "INSTRUCTORS_ONLY",
    "INSUFFICIENT_ROLE",
    "MISSING_STUDENT_ID",
    "NOT_YOUR_OWN_DATA",
    "NO_INSTRUCTOR_PROFILE",
    "NO_STUDENT_PROFILE",
    "ROLE_NOT_AUTHORIZED",
    "STUDENT_NOT_ASSIGNED",
    "deny",
]
