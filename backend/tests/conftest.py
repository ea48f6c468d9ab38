"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend.*` and the test
helpers importable without installation, and give every test a fresh,
seeded relationship store.
"""
import sys
from pathlib import Path

import pytest

# Ensure modules in the repo root and backend/tests are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from backend.identity_access.accounts import InMemoryAccountDirectory  # noqa: E402
from backend.identity_access.domain import Principal, Role  # noqa: E402
from backend.scheduling.store import InMemoryRelationshipStore  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store() -> InMemoryRelationshipStore:
    """Driving-school fixture graph.

    Users → profiles:
        u1 → student s1, u2 → student s2, u5 → student s3 (never taught)
        u3 → instructor i1, u4 → instructor i2, u6 → instructor without profile
    Lessons: L1 (i1, s1), L2 (i2, s2)
    Exams: e1 (s1), e2 (s2), e-dangling (student profile missing)
    Requests: r1 (s1), r3 (s3)
    """
    s = InMemoryRelationshipStore()
    s.add_student_profile("s1", "u1")
    s.add_student_profile("s2", "u2")
    s.add_student_profile("s3", "u5")
    s.add_instructor_profile("i1", "u3")
    s.add_instructor_profile("i2", "u4")
    s.add_lesson("L1", instructor_id="i1", student_id="s1", starts_at="2026-03-02T09:00:00+00:00", status="COMPLETED")
    s.add_lesson("L2", instructor_id="i2", student_id="s2", status="CONFIRMED")
    s.add_exam("e1", student_id="s1", kind="CODE")
    s.add_exam("e2", student_id="s2", kind="DRIVING")
    s.add_exam("e-dangling", student_id="s-gone")
    s.add_lesson_request("r1", student_id="s1", status="PENDING")
    s.add_lesson_request("r3", student_id="s3", status="PENDING")
    return s


@pytest.fixture
def accounts() -> InMemoryAccountDirectory:
    """Accounts matching the principals below, as stored in `users`."""
    d = InMemoryAccountDirectory()
    d.add_account("u1", "STUDENT", email="u1@example.test")
    d.add_account("u3", "INSTRUCTOR")
    d.add_account("admin-1", "ADMIN")
    return d


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def student_u1() -> Principal:
    return Principal(id="u1", role=Role.STUDENT)


@pytest.fixture
def student_u2() -> Principal:
    return Principal(id="u2", role=Role.STUDENT)


@pytest.fixture
def instructor_u3() -> Principal:
    return Principal(id="u3", role=Role.INSTRUCTOR)


@pytest.fixture
def instructor_u4() -> Principal:
    return Principal(id="u4", role=Role.INSTRUCTOR)


@pytest.fixture
def instructor_without_profile() -> Principal:
    return Principal(id="u6", role=Role.INSTRUCTOR)


@pytest.fixture(autouse=True)
def _reset_web_store_and_env(monkeypatch: pytest.MonkeyPatch):
    """Reset the web store slot and env toggles per test.

    Why:
        API tests inject a store via `set_store` and an account directory via
        `set_accounts`; without a reset they leak into unrelated tests. Env toggles (uniform denials, prod mode) are
        cleared so each test opts in explicitly.
    """
    for var in (
        "AUTOECOLE_ENV",
        "ACCESS_UNIFORM_DENIALS",
        "SCHEDULING_STORE",
        "JWT_ISSUER",
        "ACCESS_TOKEN_TTL_SECONDS",
        "REFRESH_TOKEN_TTL_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("JWT_SECRET", "test-only-secret-0123456789abcdef0123")
    monkeypatch.setenv("JWT_REFRESH_SECRET", "test-only-refresh-secret-0123456789abcdef")
    try:
        from backend.web import store_wiring
    except Exception:
        yield
        return
    store_wiring.set_store(None)
    store_wiring.set_accounts(None)
    yield
    store_wiring.set_store(None)
    store_wiring.set_accounts(None)
