"""
Access guard predicates for the driving-school API.

Why:
    Authorization is the only non-CRUD logic of the platform. It combines
    role membership with a relationship graph: an instructor may see a
    student's data only after sharing at least one Lesson with them. There is
    no separate assignment table, and any Lesson counts (past, current or
    future), with no expiry.

Design:
    - `check_*` functions are the predicates. They take the principal, an
      already-resolved identifier and the relationship store, and return a
      `Decision`. They never raise for access reasons; store failures
      propagate unchanged.
    - Every predicate handles `principal is None` first (401) and then the
      admin bypass, before touching parameters or the store.
    - `require_*` factories bind configuration (parameter name and source)
      and return `Guard` callables for `GuardChain`.
"""
from __future__ import annotations

from typing import Awaitable, Callable, FrozenSet, Iterable, Optional

from backend.identity_access.domain import Principal, Role
from backend.scheduling.store import RelationshipStore

from .context import ParamSource, RequestContext
from .decisions import (
    ALLOW,
    AUTHENTICATION_REQUIRED,
    INSTRUCTORS_ONLY,
    INSUFFICIENT_ROLE,
    MISSING_STUDENT_ID,
    NOT_YOUR_OWN_DATA,
    NO_INSTRUCTOR_PROFILE,
    NO_STUDENT_PROFILE,
    ROLE_NOT_AUTHORIZED,
    STUDENT_NOT_ASSIGNED,
    Decision,
    DenyKind,
    deny,
)

Guard = Callable[[Optional[Principal], RequestContext, RelationshipStore], Awaitable[Decision]]

NOT_YOUR_LESSON = deny(DenyKind.FORBIDDEN_OWNERSHIP, "not your lesson")
LESSON_NOT_FOUND = deny(DenyKind.NOT_FOUND, "lesson not found")
EXAM_NOT_FOUND = deny(DenyKind.NOT_FOUND, "exam not found")
LESSON_REQUEST_NOT_FOUND = deny(DenyKind.NOT_FOUND, "lesson request not found")
MISSING_LESSON_ID = deny(DenyKind.MALFORMED_REQUEST, "missing lesson id")
MISSING_EXAM_ID = deny(DenyKind.MALFORMED_REQUEST, "missing exam id")
MISSING_REQUEST_ID = deny(DenyKind.MALFORMED_REQUEST, "missing lesson request id")


def _named(name: str):
    def wrap(fn):
        fn.__name__ = name
        fn.__qualname__ = name
        return fn
    return wrap


def _roles(values: Iterable[Role | str]) -> FrozenSet[Role]:
    return frozenset(Role.parse(v) for v in values)


# --- Predicates ---------------------------------------------------------------

def check_authenticated(principal: Optional[Principal]) -> Decision:
    if principal is None:
        return AUTHENTICATION_REQUIRED
    return ALLOW


def check_role(principal: Optional[Principal], allowed_roles: Iterable[Role | str]) -> Decision:
    """Admins pass even when ADMIN is not listed in `allowed_roles`."""
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    if principal.role not in _roles(allowed_roles):
        return INSUFFICIENT_ROLE
    return ALLOW


async def check_student_ownership(principal: Optional[Principal], student_id: Optional[str], store: RelationshipStore) -> Decision:
    """Allow a student to reach only records keyed by their own profile id.

    No role check: a non-student has no student profile and fails the match.
    """
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    profile = await store.find_student_profile_by_user_id(principal.id)
    if profile is None or profile.id != student_id:
        return NOT_YOUR_OWN_DATA
    return ALLOW


async def check_instructor_student_access(principal: Optional[Principal], student_id: Optional[str], store: RelationshipStore) -> Decision:
    """Allow an instructor who shares at least one Lesson with the student."""
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    if principal.role is not Role.INSTRUCTOR:
        return INSTRUCTORS_ONLY
    if not student_id:
        return MISSING_STUDENT_ID
    instructor = await store.find_instructor_profile_by_user_id(principal.id)
    if instructor is None:
        return NO_INSTRUCTOR_PROFILE
    if not await store.exists_lesson_between(instructor.id, student_id):
        return STUDENT_NOT_ASSIGNED
    return ALLOW


async def check_lesson_access(principal: Optional[Principal], lesson_id: Optional[str], store: RelationshipStore) -> Decision:
    """Only the lesson's instructor, its student, or an admin."""
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    if not lesson_id:
        return MISSING_LESSON_ID
    lesson = await store.find_lesson_by_id(lesson_id)
    if lesson is None:
        return LESSON_NOT_FOUND

    if principal.role is Role.INSTRUCTOR:
        instructor = await store.find_instructor_profile_by_user_id(principal.id)
        if instructor is None:
            return NO_INSTRUCTOR_PROFILE
        if lesson.instructor_id != instructor.id:
            return NOT_YOUR_LESSON
        return ALLOW

    if principal.role is Role.STUDENT:
        student = await store.find_student_profile_by_user_id(principal.id)
        if student is None:
            return NO_STUDENT_PROFILE
        if lesson.student_id != student.id:
            return NOT_YOUR_LESSON
        return ALLOW

    return ROLE_NOT_AUTHORIZED


async def check_exam_access(principal: Optional[Principal], exam_id: Optional[str], store: RelationshipStore) -> Decision:
    """The exam's student, an instructor linked to that student, or an admin.

    An exam whose student profile no longer resolves is denied for
    instructors: without a profile there can be no Lesson linkage.
    """
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    if not exam_id:
        return MISSING_EXAM_ID
    exam = await store.find_exam_by_id(exam_id)
    if exam is None:
        return EXAM_NOT_FOUND

    if principal.role is Role.STUDENT:
        student = await store.find_student_profile_by_user_id(principal.id)
        if student is None or student.id != exam.student_id:
            return NOT_YOUR_OWN_DATA
        return ALLOW

    if principal.role is Role.INSTRUCTOR:
        instructor = await store.find_instructor_profile_by_user_id(principal.id)
        if instructor is None:
            return NO_INSTRUCTOR_PROFILE
        student = await store.find_student_profile_by_id(exam.student_id)
        if student is None:
            return STUDENT_NOT_ASSIGNED
        if not await store.exists_lesson_between(instructor.id, student.id):
            return STUDENT_NOT_ASSIGNED
        return ALLOW

    return ROLE_NOT_AUTHORIZED


async def check_lesson_request_access(principal: Optional[Principal], request_id: Optional[str], store: RelationshipStore) -> Decision:
    """The requesting student, an instructor who already taught them, or an admin.

    An unassigned instructor cannot pick up a brand-new student's request
    through this guard.
    """
    if principal is None:
        return AUTHENTICATION_REQUIRED
    if principal.is_admin:
        return ALLOW
    if not request_id:
        return MISSING_REQUEST_ID
    lesson_request = await store.find_lesson_request_by_id(request_id)
    if lesson_request is None:
        return LESSON_REQUEST_NOT_FOUND

    if principal.role is Role.STUDENT:
        student = await store.find_student_profile_by_user_id(principal.id)
        if student is None or student.id != lesson_request.student_id:
            return NOT_YOUR_OWN_DATA
        return ALLOW

    if principal.role is Role.INSTRUCTOR:
        instructor = await store.find_instructor_profile_by_user_id(principal.id)
        if instructor is None:
            return NO_INSTRUCTOR_PROFILE
        if not await store.exists_lesson_between(instructor.id, lesson_request.student_id):
            return STUDENT_NOT_ASSIGNED
        return ALLOW

    return ROLE_NOT_AUTHORIZED


# --- Guard factories ----------------------------------------------------------

def require_authenticated() -> Guard:
    @_named("require_authenticated")
    async def guard(principal, request, store):
        return check_authenticated(principal)
    return guard


def require_role(*roles: Role | str) -> Guard:
    """Guard for role membership. `require_role()` admits admins only."""
    allowed = _roles(roles)

    @_named(f"require_role[{','.join(sorted(r.value for r in allowed))}]")
    async def guard(principal, request, store):
        return check_role(principal, allowed)
    return guard


def require_student_ownership(param: str = "id", source: ParamSource = ParamSource.PARAMS) -> Guard:
    @_named(f"require_student_ownership[{param}]")
    async def guard(principal, request, store):
        return await check_student_ownership(principal, request.resolve(param, source), store)
    return guard


def require_instructor_has_student_access(param: str = "studentId", source: ParamSource = ParamSource.PARAMS) -> Guard:
    @_named(f"require_instructor_has_student_access[{source.value}.{param}]")
    async def guard(principal, request, store):
        return await check_instructor_student_access(principal, request.resolve(param, source), store)
    return guard


def require_lesson_access(param: str = "id") -> Guard:
    @_named(f"require_lesson_access[{param}]")
    async def guard(principal, request, store):
        return await check_lesson_access(principal, request.resolve(param), store)
    return guard


def require_exam_access(param: str = "id") -> Guard:
    @_named(f"require_exam_access[{param}]")
    async def guard(principal, request, store):
        return await check_exam_access(principal, request.resolve(param), store)
    return guard


def require_lesson_request_access(param: str = "id") -> Guard:
    @_named(f"require_lesson_request_access[{param}]")
    async def guard(principal, request, store):
        return await check_lesson_request_access(principal, request.resolve(param), store)
    return guard


__all__ = [
    "Guard",
    "check_authenticated",
    "check_exam_access",
    "check_instructor_student_access",
    "check_lesson_access",
    "check_lesson_request_access",
    "check_role",
    "check_student_ownership",
    "require_authenticated",
    "require_exam_access",
    "require_instructor_has_student_access",
    "require_lesson_access",
    "require_lesson_request_access",
    "require_role",
    "require_student_ownership",
]
