"Auto-école access API"
from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.identity_access.context import ACCESS_TOKEN_COOKIE, authenticate_request
from backend.identity_access.tokens import load_token_config
from backend.scheduling.store import StoreError

from . import config
from .auth_utils import cookie_opts
from .store_wiring import get_accounts
from .routes.scheduling import scheduling_router
from .routes.users import users_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via AUTOECOLE_ENABLE_DOTENV (default true
      outside pytest).
    """
    import sys
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("AUTOECOLE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
config.ensure_secure_config_on_startup()

logger = logging.getLogger("autoecole.web")

app = FastAPI(title="Auto-école access API", description="Role and relationship guards for scheduling data", version="0.1.0")

app.include_router(users_router)
app.include_router(scheduling_router)


# --- Identity & Security Middleware --------------------------------------------

def _store_unavailable() -> JSONResponse:
    return JSONResponse(
        {"error": "service_unavailable", "message": "relationship store unavailable"},
        status_code=503,
        headers={"Cache-Control": "private, no-store"},
    )


def _set_access_cookie(response, value: str, *, max_age: int) -> None:
    opts = cookie_opts(config.current_environment())
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


@app.middleware("http")
async def identity_context(request: Request, call_next):
    """Attach the verified principal (or None). Guards decide on rejection.

    A session renewed from the refresh cookie gets a fresh access cookie on
    the response.
    """
    cfg = load_token_config()
    try:
        auth = await authenticate_request(request, accounts=get_accounts(), cfg=cfg)
    except StoreError as exc:
        logger.warning("Account directory failure path=%s code=%s", request.url.path, exc.code)
        return _store_unavailable()
    request.state.principal = auth.principal
    response = await call_next(request)
    if auth.renewed_access_token:
        _set_access_cookie(response, auth.renewed_access_token, max_age=cfg.ttl_seconds)
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Errors ---------------------------------------------------------------------

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Store failures are service errors, never an access decision."""
    logger.warning("Relationship store failure path=%s code=%s", request.url.path, exc.code)
    return _store_unavailable()


@app.get("/health")
async def health():
    return {"status": "healthy", "environment": config.current_environment()}
