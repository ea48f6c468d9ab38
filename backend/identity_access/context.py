"""
Per-request identity context.

Why:
    Guards consume a `Principal | None` and nothing else from the identity
    layer. Token extraction happens once in the web middleware; handlers and
    guards read the result via `current_principal(request)`.

Behavior:
    - Bearer token in `Authorization` wins over the `accessToken` cookie.
    - When the access token is missing, invalid or expired, a valid
      `refreshToken` cookie renews the session: the account's current role
      is reloaded from the directory and a new access token is returned for
      the middleware to set as cookie.
    - Any other failure yields `None` (unauthenticated). Rejection is left to
      the guards so public routes keep working.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from starlette.requests import Request

from .accounts import AccountDirectory
from .domain import Principal, Role
from .tokens import (
    AccessTokenVerificationError,
    RefreshTokenVerificationError,
    TokenConfig,
    issue_access_token,
    load_token_config,
    verify_access_token,
    verify_refresh_token,
)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

logger = logging.getLogger("autoecole.identity_access")


@dataclass(frozen=True)
class Authentication:
    principal: Optional[Principal] = None
    renewed_access_token: Optional[str] = None


ANONYMOUS = Authentication()


def extract_access_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    cookie = request.cookies.get(ACCESS_TOKEN_COOKIE)
    return cookie or None


def resolve_principal(request: Request, *, cfg: TokenConfig | None = None) -> Optional[Principal]:
    """Verify the request's access token and return its principal, if any."""
    token = extract_access_token(request)
    if not token:
        return None
    try:
        return verify_access_token(token, cfg=cfg)
    except AccessTokenVerificationError as exc:
        logger.info("Access token rejected: %s", exc.code)
        return None


async def authenticate_request(
    request: Request,
    *,
    accounts: AccountDirectory,
    cfg: TokenConfig | None = None,
) -> Authentication:
    """Resolve the caller, renewing from the refresh cookie when needed.

    Directory failures propagate as `StoreError`; they are not a reason to
    treat the caller as anonymous.
    """
    cfg = cfg or load_token_config()
    principal = resolve_principal(request, cfg=cfg)
    if principal is not None:
        return Authentication(principal=principal)

    refresh = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not refresh:
        return ANONYMOUS
    try:
        user_id = verify_refresh_token(refresh, cfg=cfg)
    except RefreshTokenVerificationError as exc:
        logger.info("Refresh token rejected: %s", exc.code)
        return ANONYMOUS

    account = await accounts.find_account(user_id)
    if account is None:
        logger.info("Refresh token names unknown account")
        return ANONYMOUS
    try:
        role = Role.parse(account.role)
    except ValueError:
        logger.warning("Account has no valid role; refusing renewal")
        return ANONYMOUS

    renewed = issue_access_token(user_id=account.id, role=role, email=account.email, cfg=cfg)
    return Authentication(principal=Principal(id=account.id, role=role), renewed_access_token=renewed)


def current_principal(request: Request) -> Optional[Principal]:
    """Return the principal attached by the identity middleware (or None)."""
    principal = getattr(request.state, "principal", None)
    return principal if isinstance(principal, Principal) else None
