"""
Shared web security helpers: run access guards for a route.

Why:
    Routes declare their guards and call `enforce` first. The helper builds
    the typed request context, evaluates the chain against the injected
    relationship store, and turns a denial into a private JSON response, so
    every route maps decisions to HTTP the same way.

Usage:
    error = await enforce(request, require_lesson_access("lesson_id"))
    if error:
        return error
"""
from __future__ import annotations

from typing import Any, Dict, List, Union

from fastapi import Request
from fastapi.responses import JSONResponse

from backend.access.chain import GuardChain, evaluate_guards
from backend.access.context import RequestContext
from backend.access.decisions import Decision, DenyKind, deny
from backend.access.guards import Guard
from backend.identity_access.context import current_principal
from backend.scheduling.store import RelationshipStore

from .. import config
from ..store_wiring import get_store

_BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def _private_headers() -> Dict[str, str]:
    return {"Cache-Control": "private, no-store"}


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse kept out of shared caches (caller-scoped data)."""
    return JSONResponse(content=payload, status_code=status_code, headers=_private_headers())


def denial_response(decision: Decision) -> JSONResponse:
    """Translate a denial into `{error, message}` with its status code.

    With ACCESS_UNIFORM_DENIALS=true a 404 is reported as 403 so callers
    cannot probe which ids exist.
    """
    if decision.kind is DenyKind.NOT_FOUND and config.uniform_denials_enabled():
        decision = deny(DenyKind.FORBIDDEN_OWNERSHIP, "forbidden")
    headers = _private_headers()
    if decision.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(content=decision.to_body(), status_code=decision.status_code, headers=headers)


async def request_context(request: Request) -> RequestContext:
    """Collect path params and, for JSON writes, the decoded object body."""
    body: Dict[str, Any] = {}
    if request.method in _BODY_METHODS and "application/json" in (request.headers.get("content-type") or ""):
        try:
            data = await request.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            body = data
    return RequestContext(params=dict(request.path_params), body=body)


def _flatten(guards: tuple) -> List[Guard]:
    out: List[Guard] = []
    for g in guards:
        if isinstance(g, GuardChain):
            out.extend(g.guards)
        else:
            out.append(g)
    return out


async def enforce(
    request: Request,
    *guards: Union[Guard, GuardChain],
    store: RelationshipStore | None = None,
) -> JSONResponse | None:
    """Return a denial response, or None when every guard allows."""
    ctx = await request_context(request)
    decision = await evaluate_guards(_flatten(guards), current_principal(request), ctx, store or get_store())
    if decision.allowed:
        return None
    return denial_response(decision)
