"""
Coarse role → permission matrix.

Complements the relationship guards: `can()` answers "may this role ever do
X on Y", while the guards in `guards.py` answer "may this caller touch this
particular record". A `manage` grant implies every action on the resource.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from backend.identity_access.domain import Principal, Role

from .decisions import ALLOW, AUTHENTICATION_REQUIRED, INSUFFICIENT_ROLE, Decision


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"
    UPLOAD = "upload"
    PAY = "pay"


class Resource(str, Enum):
    USER = "user"
    PROFILE = "profile"
    OFFER = "offer"
    PRE_REGISTRATION = "pre-registration"
    PAYMENT = "payment"
    INVOICE = "invoice"
    DOCUMENT = "document"
    AUDIT_LOG = "audit-log"
    NOTIFICATION_LOG = "notification-log"
    LESSON = "lesson"
    AVAILABILITY = "availability"


Condition = Callable[[Principal, Any], bool]


@dataclass(frozen=True)
class Permission:
    actions: FrozenSet[Action]
    resource: Resource
    condition: Optional[Condition] = None

    def covers(self, action: Action, resource: Resource) -> bool:
        if resource is not self.resource:
            return False
        return Action.MANAGE in self.actions or action in self.actions


def _record_user_id(record: Any) -> Optional[str]:
    if isinstance(record, dict):
        value = record.get("user_id", record.get("userId"))
    else:
        value = getattr(record, "user_id", None)
    return str(value) if value is not None else None


def _own_profile(principal: Principal, record: Any) -> bool:
    return _record_user_id(record) == principal.id


def _perm(actions: Tuple[Action, ...], resource: Resource, condition: Optional[Condition] = None) -> Permission:
    return Permission(actions=frozenset(actions), resource=resource, condition=condition)


ROLE_PERMISSIONS: Dict[Role, Tuple[Permission, ...]] = {
    Role.ADMIN: tuple(_perm((Action.MANAGE,), r) for r in Resource),
    Role.INSTRUCTOR: (
        _perm((Action.READ,), Resource.USER),
        _perm((Action.READ, Action.UPDATE), Resource.AVAILABILITY),
        _perm((Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE), Resource.LESSON),
        _perm((Action.READ,), Resource.DOCUMENT),
        _perm((Action.CREATE, Action.READ, Action.UPDATE), Resource.PROFILE),
    ),
    Role.STUDENT: (
        _perm((Action.READ, Action.UPDATE), Resource.PROFILE, _own_profile),
        _perm((Action.READ,), Resource.LESSON),
        _perm((Action.CREATE,), Resource.PRE_REGISTRATION),
        _perm((Action.UPLOAD,), Resource.DOCUMENT),
        _perm((Action.READ,), Resource.PAYMENT),
        _perm((Action.READ,), Resource.INVOICE),
    ),
}


def can(
    role: Role | str,
    action: Action | str,
    resource: Resource | str,
    *,
    principal: Optional[Principal] = None,
    record: Any = None,
) -> bool:
    """Return True when `role` may perform `action` on `resource`.

    Conditional grants are only checked when both `principal` and `record`
    are given; without them the grant applies as listed.
    """
    try:
        role_enum = Role.parse(role)
        action_enum = Action(action)
        resource_enum = Resource(resource)
    except ValueError:
        return False
    for perm in ROLE_PERMISSIONS.get(role_enum, ()):
        if not perm.covers(action_enum, resource_enum):
            continue
        if perm.condition is not None and principal is not None and record is not None:
            if perm.condition(principal, record):
                return True
            continue
        return True
    return False


def require_permission(action: Action | str, resource: Resource | str):
    """Guard factory backed by the permission matrix."""
    action_enum = Action(action)
    resource_enum = Resource(resource)

    async def guard(principal, request, store) -> Decision:
        if principal is None:
            return AUTHENTICATION_REQUIRED
        if principal.is_admin:
            return ALLOW
        if not can(principal.role, action_enum, resource_enum):
            return INSUFFICIENT_ROLE
        return ALLOW

    guard.__name__ = guard.__qualname__ = f"require_permission[{action_enum.value}:{resource_enum.value}]"
    return guard


__all__ = ["Action", "Permission", "ROLE_PERMISSIONS", "Resource", "can", "require_permission"]
