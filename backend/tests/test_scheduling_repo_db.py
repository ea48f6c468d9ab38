"""
Unit-style tests for DBRelationshipStore using a fake psycopg driver.

Rationale: Keep CI/self-contained runs green without a real Postgres. The
fake answers exactly the SELECTs the store issues, so these tests pin the
row → model mapping and the error contract (driver failure is a store error,
never "not found").
"""
from __future__ import annotations

import pytest

from backend.scheduling import repo_db
from backend.scheduling.models import Exam, Lesson, LessonRequest, StudentProfile
from backend.scheduling.store import StoreError, StoreUnavailableError
from utils.fake_psycopg import FakeTables, install_fake_psycopg


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def tables(monkeypatch: pytest.MonkeyPatch) -> FakeTables:
    t = FakeTables(
        student_profiles=[("s1", "u1"), ("s2", "u2")],
        instructor_profiles=[("i1", "u3")],
        lessons=[
            ("L1", "i1", "s1", "2026-03-02T09:00:00+00:00", "COMPLETED"),
            ("L2", "i1", "s2", None, "PENDING"),
            ("L3", "i1", "s1", None, "CONFIRMED"),
        ],
        exams=[("e1", "s1", "CODE", "SCHEDULED")],
        lesson_requests=[("r1", "s1", "PENDING")],
    )
    return install_fake_psycopg(monkeypatch, repo_db, t)


@pytest.fixture
def db_store(tables) -> repo_db.DBRelationshipStore:
    return repo_db.DBRelationshipStore(dsn="postgresql://autoecole_ro:secret@db:5432/autoecole")


@pytest.mark.anyio
async def test_profiles_map_rows(db_store):
    assert await db_store.find_student_profile_by_user_id("u1") == StudentProfile(id="s1", user_id="u1")
    assert await db_store.find_student_profile_by_id("s2") == StudentProfile(id="s2", user_id="u2")
    assert (await db_store.find_instructor_profile_by_user_id("u3")).id == "i1"
    assert await db_store.find_student_profile_by_user_id("u3") is None
    assert await db_store.find_instructor_profile_by_user_id("u1") is None


@pytest.mark.anyio
async def test_lesson_lookup_and_existence(db_store):
    lesson = await db_store.find_lesson_by_id("L1")
    assert lesson == Lesson(id="L1", instructor_id="i1", student_id="s1", starts_at="2026-03-02T09:00:00+00:00", status="COMPLETED")
    assert await db_store.find_lesson_by_id("nope") is None
    assert await db_store.exists_lesson_between("i1", "s1") is True
    assert await db_store.exists_lesson_between("i1", "s9") is False


@pytest.mark.anyio
async def test_students_for_instructor_are_distinct(db_store):
    assert await db_store.list_student_ids_for_instructor("i1") == ["s1", "s2"]
    assert await db_store.list_student_ids_for_instructor("i9") == []


@pytest.mark.anyio
async def test_exam_and_request_lookup(db_store):
    assert await db_store.find_exam_by_id("e1") == Exam(id="e1", student_id="s1", kind="CODE", status="SCHEDULED")
    assert await db_store.find_lesson_request_by_id("r1") == LessonRequest(id="r1", student_id="s1", status="PENDING")
    assert await db_store.find_exam_by_id("e9") is None
    assert await db_store.find_lesson_request_by_id("r9") is None


@pytest.mark.anyio
async def test_queries_are_parameterized(db_store, tables):
    await db_store.find_student_profile_by_user_id("u1' or '1'='1")
    sql, params = tables.executed[-1]
    assert "u1'" not in sql
    assert params == ("u1' or '1'='1",)


@pytest.mark.anyio
async def test_driver_failure_is_store_error_not_absence(db_store, tables, caplog):
    tables.connect_error = OSError("connection refused")
    caplog.set_level("WARNING", logger="autoecole.scheduling")
    with pytest.raises(StoreUnavailableError) as excinfo:
        await db_store.find_student_profile_by_user_id("u1")
    assert excinfo.value.code == "query_failed"
    assert isinstance(excinfo.value, StoreError)
    # DSN (with credentials) must never reach the logs.
    assert "secret" not in caplog.text
    with pytest.raises(StoreUnavailableError):
        await db_store.exists_lesson_between("i1", "s1")
    with pytest.raises(StoreUnavailableError):
        await db_store.list_student_ids_for_instructor("i1")


def test_dsn_resolution_prefers_scheduling_url(monkeypatch: pytest.MonkeyPatch, tables):
    monkeypatch.setenv("DATABASE_URL", "postgresql://general@db/x")
    monkeypatch.setenv("SCHEDULING_DATABASE_URL", "postgresql://sched@db/x")
    assert repo_db.DBRelationshipStore()._dsn == "postgresql://sched@db/x"
    monkeypatch.delenv("SCHEDULING_DATABASE_URL")
    assert repo_db.DBRelationshipStore()._dsn == "postgresql://general@db/x"


def test_missing_dsn_raises(monkeypatch: pytest.MonkeyPatch, tables):
    monkeypatch.delenv("SCHEDULING_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        repo_db.DBRelationshipStore()


def test_missing_driver_raises(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(repo_db, "HAVE_PSYCOPG", False)
    with pytest.raises(RuntimeError):
        repo_db.DBRelationshipStore(dsn="postgresql://x@db/x")
