"""Access guards for the driving-school API.

Re-export the guard factories, composition and decision types for
convenient imports in routes and tests.
"""

from .chain import GuardChain, evaluate_guards
from .context import ParamSource, RequestContext
from .decisions import ALLOW, Decision, DenyKind, deny
from .guards import (
    Guard,
    require_authenticated,
    require_exam_access,
    require_instructor_has_student_access,
    require_lesson_access,
    require_lesson_request_access,
    require_role,
    require_student_ownership,
)
from .rbac import Action, Resource, can, require_permission
from .scopes import StudentScope, student_scope

__all__ = [
    "ALLOW",
    "Action",
    "Decision",
    "DenyKind",
    "Guard",
    "GuardChain",
    "ParamSource",
    "RequestContext",
    "Resource",
    "StudentScope",
    "can",
    "deny",
    "evaluate_guards",
    "require_authenticated",
    "require_exam_access",
    "require_instructor_has_student_access",
    "require_lesson_access",
    "require_lesson_request_access",
    "require_permission",
    "require_role",
    "require_student_ownership",
    "student_scope",
]
