"""
Postgres-backed relationship store for the access guards.

Security:
- Read-only: every statement is a point-in-time SELECT. No locks, no
  transactions spanning guard evaluations.
- Use an application login DSN; the store never needs write privileges.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Blocking driver calls run in a worker thread (`asyncio.to_thread`) so
  guard evaluation stays async for the web layer.
- Driver/SQL failures surface as `StoreUnavailableError`, never as a "not
  found" answer, so the host can map them to a service error.

Expected relations (schema design is out of scope here):
    student_profiles(id, user_id), instructor_profiles(id, user_id),
    lessons(id, instructor_id, student_id, starts_at, status),
    exams(id, student_id, type, status), lesson_requests(id, student_id, status)
"""
from __future__ import annotations

from typing import Any, List, Optional, Tuple
import asyncio
import logging
import os

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from .models import Exam, InstructorProfile, Lesson, LessonRequest, StudentProfile
from .store import StoreUnavailableError

logger = logging.getLogger("autoecole.scheduling")


def _dsn() -> str:
    """Resolve the DSN for DB access from the environment."""
    candidates = [
        os.getenv("SCHEDULING_DATABASE_URL"),
        os.getenv("DATABASE_URL"),
    ]
    for dsn in candidates:
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBRelationshipStore")


_SQL_STUDENT_BY_USER = "select id::text, user_id::text from public.student_profiles where user_id = %s limit 1"
_SQL_STUDENT_BY_ID = "select id::text, user_id::text from public.student_profiles where id = %s limit 1"
_SQL_INSTRUCTOR_BY_USER = "select id::text, user_id::text from public.instructor_profiles where user_id = %s limit 1"
_SQL_LESSON_BY_ID = """
    select id::text,
           instructor_id::text,
           student_id::text,
           case
             when starts_at is null then null
             else to_char(starts_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
           end,
           status::text
      from public.lessons
     where id = %s
     limit 1
"""
_SQL_LESSON_EXISTS = """
    select exists(
        select 1 from public.lessons where instructor_id = %s and student_id = %s
    )
"""
_SQL_EXAM_BY_ID = "select id::text, student_id::text, type::text, status::text from public.exams where id = %s limit 1"
_SQL_REQUEST_BY_ID = "select id::text, student_id::text, status::text from public.lesson_requests where id = %s limit 1"
_SQL_STUDENTS_FOR_INSTRUCTOR = """
    select student_id::text
      from public.lessons
     where instructor_id = %s
     group by student_id
     order by min(starts_at) nulls last, student_id
"""


class DBRelationshipStore:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize a Postgres-backed store.

        Parameters:
            dsn: Optional explicit DSN. When omitted, resolves from
                 SCHEDULING_DATABASE_URL, then DATABASE_URL.

        Behavior:
            Does not open a connection eagerly; connections are per-call.
        """
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBRelationshipStore")
        self._dsn = dsn or _dsn()

    # --- Plumbing ---------------------------------------------------------------
    def _fetchone(self, sql: str, params: Tuple[Any, ...]) -> Optional[Tuple]:
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    return cur.fetchone()
        except Exception as exc:
            logger.warning("Relationship query failed: %s", exc.__class__.__name__)
            raise StoreUnavailableError("query_failed") from exc

    def _fetchall(self, sql: str, params: Tuple[Any, ...]) -> List[Tuple]:
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    return list(cur.fetchall() or [])
        except Exception as exc:
            logger.warning("Relationship query failed: %s", exc.__class__.__name__)
            raise StoreUnavailableError("query_failed") from exc

    async def _one(self, sql: str, *params: Any) -> Optional[Tuple]:
        return await asyncio.to_thread(self._fetchone, sql, tuple(params))

    # --- Profiles ---------------------------------------------------------------
    async def find_student_profile_by_user_id(self, user_id: str) -> Optional[StudentProfile]:
        row = await self._one(_SQL_STUDENT_BY_USER, user_id)
        return StudentProfile(id=row[0], user_id=row[1]) if row else None

    async def find_instructor_profile_by_user_id(self, user_id: str) -> Optional[InstructorProfile]:
        row = await self._one(_SQL_INSTRUCTOR_BY_USER, user_id)
        return InstructorProfile(id=row[0], user_id=row[1]) if row else None

    async def find_student_profile_by_id(self, profile_id: str) -> Optional[StudentProfile]:
        row = await self._one(_SQL_STUDENT_BY_ID, profile_id)
        return StudentProfile(id=row[0], user_id=row[1]) if row else None

    # --- Lessons ----------------------------------------------------------------
    async def find_lesson_by_id(self, lesson_id: str) -> Optional[Lesson]:
        row = await self._one(_SQL_LESSON_BY_ID, lesson_id)
        if not row:
            return None
        return Lesson(id=row[0], instructor_id=row[1], student_id=row[2], starts_at=row[3], status=row[4])

    async def exists_lesson_between(self, instructor_profile_id: str, student_profile_id: str) -> bool:
        row = await self._one(_SQL_LESSON_EXISTS, instructor_profile_id, student_profile_id)
        return bool(row and row[0])

    async def list_student_ids_for_instructor(self, instructor_profile_id: str) -> List[str]:
        rows = await asyncio.to_thread(self._fetchall, _SQL_STUDENTS_FOR_INSTRUCTOR, (instructor_profile_id,))
        return [str(r[0]) for r in rows if r and r[0]]

    # --- Exams & requests -------------------------------------------------------
    async def find_exam_by_id(self, exam_id: str) -> Optional[Exam]:
        row = await self._one(_SQL_EXAM_BY_ID, exam_id)
        return Exam(id=row[0], student_id=row[1], kind=row[2], status=row[3]) if row else None

    async def find_lesson_request_by_id(self, request_id: str) -> Optional[LessonRequest]:
        row = await self._one(_SQL_REQUEST_BY_ID, request_id)
        return LessonRequest(id=row[0], student_id=row[1], status=row[2]) if row else None


__all__ = ["DBRelationshipStore", "HAVE_PSYCOPG"]
