"""
Scheduling records read by the access guards.

Profiles are 1:1 with user accounts but carry their own id. A Lesson is the
only edge linking an instructor to a student; there is no assignment table.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StudentProfile:
    id: str
    user_id: str


@dataclass(frozen=True)
class InstructorProfile:
    id: str
    user_id: str


@dataclass(frozen=True)
class Lesson:
    id: str
    instructor_id: str
    student_id: str
    starts_at: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class Exam:
    id: str
    student_id: str
    kind: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class LessonRequest:
    id: str
    student_id: str
    status: Optional[str] = None


__all__ = ["Exam", "InstructorProfile", "Lesson", "LessonRequest", "StudentProfile"]
