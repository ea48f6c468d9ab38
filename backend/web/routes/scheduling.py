"""
Scheduling API routes: lessons, exams and lesson requests.

Why:
    Read access to scheduling records is relationship-scoped: a lesson
    belongs to its instructor and its student, an exam and a lesson request
    to their student and to instructors who have taught that student.

Notes:
    - Routes only declare guards and serialize the record; scheduling writes
      are handled by other services.
    - Missing records surface as 404 from the guards themselves (admins skip
      the guard and get the handler's own 404).
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request

from backend.access.chain import GuardChain
from backend.access.guards import (
    require_exam_access,
    require_lesson_access,
    require_lesson_request_access,
    require_role,
)
from backend.identity_access.domain import Role

from ..store_wiring import get_store
from .security import enforce, json_private

scheduling_router = APIRouter(tags=["Scheduling"])  # explicit paths below

# Accepting a request is reserved to instructors that may see it.
ACCEPT_REQUEST_GUARDS = GuardChain([require_role(Role.INSTRUCTOR)]).then(require_lesson_request_access("id"))


def _not_found(what: str):
    return json_private({"error": "not_found", "message": f"{what} not found"}, status_code=404)


@scheduling_router.get("/api/lessons/{id}")
async def get_lesson(request: Request, id: str):
    error = await enforce(request, require_lesson_access("id"))
    if error:
        return error
    lesson = await get_store().find_lesson_by_id(id)
    if lesson is None:
        return _not_found("lesson")
    return json_private(asdict(lesson))


@scheduling_router.get("/api/exams/{id}")
async def get_exam(request: Request, id: str):
    error = await enforce(request, require_exam_access("id"))
    if error:
        return error
    exam = await get_store().find_exam_by_id(id)
    if exam is None:
        return _not_found("exam")
    return json_private(asdict(exam))


@scheduling_router.get("/api/requests/{id}")
async def get_lesson_request(request: Request, id: str):
    error = await enforce(request, require_lesson_request_access("id"))
    if error:
        return error
    lesson_request = await get_store().find_lesson_request_by_id(id)
    if lesson_request is None:
        return _not_found("lesson request")
    return json_private(asdict(lesson_request))


@scheduling_router.post("/api/requests/{id}/accept")
async def accept_lesson_request(request: Request, id: str):
    """Acknowledge acceptance; lesson creation happens in the scheduling service."""
    error = await enforce(request, ACCEPT_REQUEST_GUARDS)
    if error:
        return error
    lesson_request = await get_store().find_lesson_request_by_id(id)
    if lesson_request is None:
        return _not_found("lesson request")
    return json_private({"id": lesson_request.id, "status": "ACCEPTED"}, status_code=202)
