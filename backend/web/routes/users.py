"""
Users API routes: caller identity, student records, instructor views.

Why:
    Thin read-only endpoints whose only job is to sit behind the access
    guards: students reach their own profile, instructors reach students they
    share a lesson with, admins reach everything.

Permissions:
    Declared per route via `enforce(...)`; see the guard list in each handler.
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request

from backend.access.context import ParamSource
from backend.access.guards import (
    require_authenticated,
    require_instructor_has_student_access,
    require_role,
    require_student_ownership,
)
from backend.access.scopes import student_scope
from backend.identity_access.context import current_principal
from backend.identity_access.domain import Role

from ..store_wiring import get_store
from .security import enforce, json_private, request_context

users_router = APIRouter(tags=["Users"])  # explicit paths below


@users_router.get("/api/me")
async def get_me(request: Request):
    """Return the caller's id and role."""
    error = await enforce(request, require_authenticated())
    if error:
        return error
    principal = current_principal(request)
    return json_private({"id": principal.id, "role": principal.role.value})


@users_router.get("/api/me/students")
async def list_my_students(request: Request):
    """List the student profile ids visible to the caller.

    Admins get `unrestricted: true` and no explicit list.
    """
    error = await enforce(request, require_authenticated())
    if error:
        return error
    scope = await student_scope(current_principal(request), get_store())
    return json_private({"unrestricted": scope.unrestricted, "student_ids": sorted(scope.student_ids)})


@users_router.get("/api/admin/ping")
async def admin_ping(request: Request):
    """Admin-only liveness probe for the admin console."""
    error = await enforce(request, require_role())
    if error:
        return error
    return json_private({"status": "ok"})


@users_router.get("/api/students/{id}")
async def get_student(request: Request, id: str):
    """A student's own profile (admins: any profile)."""
    error = await enforce(request, require_authenticated(), require_student_ownership("id"))
    if error:
        return error
    profile = await get_store().find_student_profile_by_id(id)
    if profile is None:
        return json_private({"error": "not_found", "message": "student not found"}, status_code=404)
    return json_private(asdict(profile))


@users_router.get("/api/instructor/students/{studentId}")
async def get_assigned_student(request: Request, studentId: str):
    """A student profile as seen by an assigned instructor."""
    error = await enforce(
        request,
        require_role(Role.INSTRUCTOR),
        require_instructor_has_student_access("studentId"),
    )
    if error:
        return error
    profile = await get_store().find_student_profile_by_id(studentId)
    if profile is None:
        return json_private({"error": "not_found", "message": "student not found"}, status_code=404)
    return json_private(asdict(profile))


@users_router.post("/api/instructor/students/notes")
async def add_student_note(request: Request):
    """Accept a progress note for a student named in the JSON body.

    Persistence of notes lives elsewhere; this endpoint only acknowledges.
    """
    error = await enforce(
        request,
        require_instructor_has_student_access("studentId", source=ParamSource.BODY),
    )
    if error:
        return error
    ctx = await request_context(request)
    student_id = ctx.resolve("studentId", ParamSource.BODY)
    if student_id is None:
        return json_private({"error": "bad_request", "message": "missing student id"}, status_code=400)
    return json_private({"student_id": student_id, "accepted": True}, status_code=202)
