"""
Identity context: role parsing and principal extraction from requests.
"""
from __future__ import annotations

import logging
import time

import pytest
from starlette.requests import Request

from backend.identity_access.context import (
    ACCESS_TOKEN_COOKIE,
    ANONYMOUS,
    REFRESH_TOKEN_COOKIE,
    authenticate_request,
    current_principal,
    extract_access_token,
    resolve_principal,
)
from backend.identity_access.domain import ALLOWED_ROLES, Principal, Role
from backend.identity_access.tokens import (
    TokenConfig,
    issue_access_token,
    issue_refresh_token,
    verify_access_token,
)
from backend.scheduling.store import StoreUnavailableError


CFG = TokenConfig(
    secret="unit-test-secret-0123456789abcdef0123",
    ttl_seconds=60,
    refresh_secret="unit-test-refresh-secret-0123456789abcdef",
)

pytestmark = pytest.mark.anyio("asyncio")


def _request(headers: dict | None = None) -> Request:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


# --- Role -----------------------------------------------------------------------

@pytest.mark.parametrize("value, expected", [("ADMIN", Role.ADMIN), ("INSTRUCTOR", Role.INSTRUCTOR), ("STUDENT", Role.STUDENT), (Role.ADMIN, Role.ADMIN)])
def test_role_parse_accepts_known_roles(value, expected):
    assert Role.parse(value) is expected


@pytest.mark.parametrize("value", [None, "", "   ", "examiner", "instructor", "admin", " Student ", "ADMIN ", 3, ["ADMIN"]])
def test_role_parse_never_defaults(value):
    with pytest.raises(ValueError):
        Role.parse(value)


def test_allowed_roles_is_closed_set():
    assert ALLOWED_ROLES == {"ADMIN", "INSTRUCTOR", "STUDENT"}
    assert Principal(id="x", role=Role.ADMIN).is_admin
    assert not Principal(id="x", role=Role.INSTRUCTOR).is_admin


# --- Extraction -----------------------------------------------------------------

def test_bearer_header_wins_over_cookie():
    req = _request({"Authorization": "Bearer header-token", "Cookie": f"{ACCESS_TOKEN_COOKIE}=cookie-token"})
    assert extract_access_token(req) == "header-token"


def test_cookie_is_used_without_header():
    req = _request({"Cookie": f"{ACCESS_TOKEN_COOKIE}=cookie-token"})
    assert extract_access_token(req) == "cookie-token"


def test_access_cookie_name_matches_login_service():
    assert ACCESS_TOKEN_COOKIE == "accessToken"
    assert REFRESH_TOKEN_COOKIE == "refreshToken"
    assert extract_access_token(_request({"Cookie": "accessToken=cookie-token"})) == "cookie-token"
    assert extract_access_token(_request({"Cookie": "access_token=cookie-token"})) is None


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer   ", "token-only"])
def test_non_bearer_headers_are_ignored(header):
    assert extract_access_token(_request({"Authorization": header})) is None


def test_resolve_principal_from_valid_token():
    token = issue_access_token(user_id="u3", role="INSTRUCTOR", cfg=CFG)
    principal = resolve_principal(_request({"Authorization": f"Bearer {token}"}), cfg=CFG)
    assert principal == Principal(id="u3", role=Role.INSTRUCTOR)


def test_resolve_principal_without_token_is_none():
    assert resolve_principal(_request(), cfg=CFG) is None


def test_invalid_token_yields_none_and_logs_code_only(caplog):
    caplog.set_level(logging.INFO, logger="autoecole.identity_access")
    assert resolve_principal(_request({"Authorization": "Bearer forged.token.value"}), cfg=CFG) is None
    assert "invalid_token" in caplog.text
    assert "forged.token.value" not in caplog.text


def test_current_principal_reads_request_state():
    req = _request()
    assert current_principal(req) is None
    req.state.principal = Principal(id="u1", role=Role.STUDENT)
    assert current_principal(req).id == "u1"
    req.state.principal = {"id": "u1", "role": "ADMIN"}
    assert current_principal(req) is None


# --- Refresh fallback -------------------------------------------------------------

def _expired_access(user_id: str = "u1", role: str = "STUDENT") -> str:
    return issue_access_token(user_id=user_id, role=role, cfg=CFG, now=time.time() - 3600)


def _cookies(**values: str) -> dict:
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in values.items())}


@pytest.mark.anyio
async def test_valid_access_token_needs_no_renewal(accounts):
    token = issue_access_token(user_id="u1", role="STUDENT", cfg=CFG)
    auth = await authenticate_request(_request({"Authorization": f"Bearer {token}"}), accounts=accounts, cfg=CFG)
    assert auth.principal == Principal(id="u1", role=Role.STUDENT)
    assert auth.renewed_access_token is None


@pytest.mark.anyio
async def test_expired_access_token_is_renewed_from_refresh_cookie(accounts):
    # Token still says STUDENT; the directory now says INSTRUCTOR.
    accounts.add_account("u1", "INSTRUCTOR")
    refresh = issue_refresh_token(user_id="u1", cfg=CFG)
    req = _request(_cookies(**{ACCESS_TOKEN_COOKIE: _expired_access(), REFRESH_TOKEN_COOKIE: refresh}))
    auth = await authenticate_request(req, accounts=accounts, cfg=CFG)
    assert auth.principal == Principal(id="u1", role=Role.INSTRUCTOR)
    assert auth.renewed_access_token
    assert verify_access_token(auth.renewed_access_token, cfg=CFG) == auth.principal


@pytest.mark.anyio
async def test_refresh_cookie_alone_is_enough(accounts):
    refresh = issue_refresh_token(user_id="admin-1", cfg=CFG)
    auth = await authenticate_request(_request(_cookies(refreshToken=refresh)), accounts=accounts, cfg=CFG)
    assert auth.principal == Principal(id="admin-1", role=Role.ADMIN)


@pytest.mark.anyio
async def test_both_tokens_invalid_is_anonymous(accounts, caplog):
    caplog.set_level(logging.INFO, logger="autoecole.identity_access")
    req = _request(_cookies(accessToken="forged.access.value", refreshToken="forged.refresh.value"))
    assert await authenticate_request(req, accounts=accounts, cfg=CFG) is ANONYMOUS
    assert "Refresh token rejected: invalid_token" in caplog.text
    assert "forged.refresh.value" not in caplog.text


@pytest.mark.anyio
async def test_expired_refresh_token_is_anonymous(accounts):
    refresh = issue_refresh_token(user_id="u1", cfg=CFG, now=time.time() - 8 * 24 * 3600)
    req = _request(_cookies(accessToken=_expired_access(), refreshToken=refresh))
    assert await authenticate_request(req, accounts=accounts, cfg=CFG) is ANONYMOUS


@pytest.mark.anyio
async def test_access_token_in_refresh_cookie_is_rejected(accounts):
    token = issue_access_token(user_id="u1", role="STUDENT", cfg=CFG)
    assert await authenticate_request(_request(_cookies(refreshToken=token)), accounts=accounts, cfg=CFG) is ANONYMOUS


@pytest.mark.anyio
async def test_refresh_for_unknown_account_is_anonymous(accounts):
    refresh = issue_refresh_token(user_id="deleted-user", cfg=CFG)
    assert await authenticate_request(_request(_cookies(refreshToken=refresh)), accounts=accounts, cfg=CFG) is ANONYMOUS


@pytest.mark.anyio
@pytest.mark.parametrize("stored_role", ["", "student", "EXAMINER"])
async def test_refresh_for_account_without_valid_role_is_anonymous(accounts, stored_role):
    accounts.add_account("u9", stored_role)
    refresh = issue_refresh_token(user_id="u9", cfg=CFG)
    assert await authenticate_request(_request(_cookies(refreshToken=refresh)), accounts=accounts, cfg=CFG) is ANONYMOUS


@pytest.mark.anyio
async def test_directory_failure_propagates():
    class _DownDirectory:
        async def find_account(self, user_id):
            raise StoreUnavailableError("query_failed")

    refresh = issue_refresh_token(user_id="u1", cfg=CFG)
    with pytest.raises(StoreUnavailableError):
        await authenticate_request(_request(_cookies(refreshToken=refresh)), accounts=_DownDirectory(), cfg=CFG)