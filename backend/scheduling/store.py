"""Relationship store interface and an in-memory implementation.

The guards only read through this protocol. Implementations own persistence;
errors they cannot answer must surface as `StoreError`, never as `None`.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .models import Exam, InstructorProfile, Lesson, LessonRequest, StudentProfile


class StoreError(Exception):
    """Base class for relationship store failures (not an access decision)."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class StoreUnavailableError(StoreError):
    """The backing store could not answer (driver missing, connection, SQL)."""


class RelationshipStore(Protocol):
    """Read-only queries the access guards depend on."""

    async def find_student_profile_by_user_id(self, user_id: str) -> Optional[StudentProfile]: ...

    async def find_instructor_profile_by_user_id(self, user_id: str) -> Optional[InstructorProfile]: ...

    async def find_student_profile_by_id(self, profile_id: str) -> Optional[StudentProfile]: ...

    async def find_lesson_by_id(self, lesson_id: str) -> Optional[Lesson]: ...

    async def exists_lesson_between(self, instructor_profile_id: str, student_profile_id: str) -> bool: ...

    async def find_exam_by_id(self, exam_id: str) -> Optional[Exam]: ...

    async def find_lesson_request_by_id(self, request_id: str) -> Optional[LessonRequest]: ...

    async def list_student_ids_for_instructor(self, instructor_profile_id: str) -> List[str]: ...


class InMemoryRelationshipStore:
    """Dict-backed store for tests and offline development."""

    def __init__(self) -> None:
        self.student_profiles: Dict[str, StudentProfile] = {}
        self.instructor_profiles: Dict[str, InstructorProfile] = {}
        self.lessons: Dict[str, Lesson] = {}
        self.exams: Dict[str, Exam] = {}
        self.lesson_requests: Dict[str, LessonRequest] = {}

    # --- Seeding ------------------------------------------------------------
    def add_student_profile(self, profile_id: str, user_id: str) -> StudentProfile:
        if any(p.user_id == user_id for p in self.student_profiles.values()):
            raise ValueError("duplicate_user_profile")
        profile = StudentProfile(id=profile_id, user_id=user_id)
        self.student_profiles[profile_id] = profile
        return profile

    def add_instructor_profile(self, profile_id: str, user_id: str) -> InstructorProfile:
        if any(p.user_id == user_id for p in self.instructor_profiles.values()):
            raise ValueError("duplicate_user_profile")
        profile = InstructorProfile(id=profile_id, user_id=user_id)
        self.instructor_profiles[profile_id] = profile
        return profile

    def add_lesson(self, lesson_id: str, *, instructor_id: str, student_id: str, starts_at: Optional[str] = None, status: Optional[str] = None) -> Lesson:
        lesson = Lesson(id=lesson_id, instructor_id=instructor_id, student_id=student_id, starts_at=starts_at, status=status)
        self.lessons[lesson_id] = lesson
        return lesson

    def add_exam(self, exam_id: str, *, student_id: str, kind: Optional[str] = None, status: Optional[str] = None) -> Exam:
        exam = Exam(id=exam_id, student_id=student_id, kind=kind, status=status)
        self.exams[exam_id] = exam
        return exam

    def add_lesson_request(self, request_id: str, *, student_id: str, status: Optional[str] = None) -> LessonRequest:
        req = LessonRequest(id=request_id, student_id=student_id, status=status)
        self.lesson_requests[request_id] = req
        return req

    # --- Queries ------------------------------------------------------------
    async def find_student_profile_by_user_id(self, user_id: str) -> Optional[StudentProfile]:
        for profile in self.student_profiles.values():
            if profile.user_id == user_id:
                return profile
        return None

    async def find_instructor_profile_by_user_id(self, user_id: str) -> Optional[InstructorProfile]:
        for profile in self.instructor_profiles.values():
            if profile.user_id == user_id:
                return profile
        return None

    async def find_student_profile_by_id(self, profile_id: str) -> Optional[StudentProfile]:
        return self.student_profiles.get(profile_id)

    async def find_lesson_by_id(self, lesson_id: str) -> Optional[Lesson]:
        return self.lessons.get(lesson_id)

    async def exists_lesson_between(self, instructor_profile_id: str, student_profile_id: str) -> bool:
        return any(
            l.instructor_id == instructor_profile_id and l.student_id == student_profile_id
            for l in self.lessons.values()
        )

    async def find_exam_by_id(self, exam_id: str) -> Optional[Exam]:
        return self.exams.get(exam_id)

    async def find_lesson_request_by_id(self, request_id: str) -> Optional[LessonRequest]:
        return self.lesson_requests.get(request_id)

    async def list_student_ids_for_instructor(self, instructor_profile_id: str) -> List[str]:
        # Preserve first-seen order; distinct ids only.
        seen: Dict[str, None] = {}
        for lesson in self.lessons.values():
            if lesson.instructor_id == instructor_profile_id:
                seen.setdefault(lesson.student_id, None)
        return list(seen)


__all__ = [
    "InMemoryRelationshipStore",
    "RelationshipStore",
    "StoreError",
    "StoreUnavailableError",
]
