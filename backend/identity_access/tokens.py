"""
Access- and refresh-token helpers for the identity_access bounded context.

Why: Keep signing and verification of session tokens outside the web adapter
so we can unit test it independently. The middleware only asks for a
`Principal`; it never looks at raw claims.

Security: Tokens are HS256 JWTs. Access tokens (15 min) are signed with
`JWT_SECRET` and carry the account id and exactly one role. A token with an
unknown or missing role is rejected instead of being downgraded to a default
role. Refresh tokens (7 days) are signed with a separate `JWT_REFRESH_SECRET`
and carry only the account id; the role is always reloaded from the account
directory when they are used.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import os
import time

from jose import jwt
from jose.exceptions import JOSEError

from .domain import Principal, Role


DEV_SECRET_PLACEHOLDER = "CHANGE_ME_DEV_ACCESS_SECRET"
DEV_REFRESH_SECRET_PLACEHOLDER = "CHANGE_ME_DEV_REFRESH_SECRET"
ACCESS_TOKEN_TTL_SECONDS = 15 * 60
REFRESH_TOKEN_TTL_SECONDS = 7 * 24 * 3600
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers
ALGORITHM = "HS256"
REFRESH_TOKEN_TYPE = "refresh"


class AccessTokenVerificationError(Exception):
    """Raised when an access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class RefreshTokenVerificationError(Exception):
    """Raised when a refresh token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS
    issuer: str | None = None
    refresh_secret: str = DEV_REFRESH_SECRET_PLACEHOLDER
    refresh_ttl_seconds: int = REFRESH_TOKEN_TTL_SECONDS


def _int_env(name: str, default: int) -> int:
    try:
        return max(1, int(os.getenv(name, str(default))))
    except ValueError:
        return default


def load_token_config() -> TokenConfig:
    secret = (os.getenv("JWT_SECRET") or "").strip() or DEV_SECRET_PLACEHOLDER
    refresh_secret = (os.getenv("JWT_REFRESH_SECRET") or "").strip() or DEV_REFRESH_SECRET_PLACEHOLDER
    issuer = (os.getenv("JWT_ISSUER") or "").strip() or None
    return TokenConfig(
        secret=secret,
        ttl_seconds=_int_env("ACCESS_TOKEN_TTL_SECONDS", ACCESS_TOKEN_TTL_SECONDS),
        issuer=issuer,
        refresh_secret=refresh_secret,
        refresh_ttl_seconds=_int_env("REFRESH_TOKEN_TTL_SECONDS", REFRESH_TOKEN_TTL_SECONDS),
    )


def _sign(claims: Dict[str, object], secret: str, ttl: int, issuer: str | None, now: float | None) -> str:
    issued_at = int(now if now is not None else time.time())
    claims = dict(claims, iat=issued_at, exp=issued_at + ttl)
    if issuer:
        claims["iss"] = issuer
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def _decode(token: str, secret: str, issuer: str | None) -> Dict[str, object]:
    """Verify signature (and issuer when configured); raise JOSEError otherwise."""
    return jwt.decode(
        token,
        secret,
        algorithms=[ALGORITHM],
        issuer=issuer,
        options={
            "verify_signature": True,
            "verify_aud": False,
            "verify_iss": issuer is not None,
            "verify_exp": False,
            "verify_iat": False,
            "verify_nbf": False,
        },
    )


def issue_access_token(
    *,
    user_id: str,
    role: Role | str,
    email: Optional[str] = None,
    cfg: TokenConfig | None = None,
    now: float | None = None,
) -> str:
    """Sign a short-lived access token for `user_id` with a single role."""
    cfg = cfg or load_token_config()
    claims: Dict[str, object] = {"id": str(user_id), "role": Role.parse(role).value}
    if email:
        claims["email"] = email
    return _sign(claims, cfg.secret, cfg.ttl_seconds, cfg.issuer, now)


def issue_refresh_token(*, user_id: str, cfg: TokenConfig | None = None, now: float | None = None) -> str:
    """Sign a long-lived refresh token. It names the account, never a role."""
    cfg = cfg or load_token_config()
    claims: Dict[str, object] = {"id": str(user_id), "typ": REFRESH_TOKEN_TYPE}
    return _sign(claims, cfg.refresh_secret, cfg.refresh_ttl_seconds, cfg.issuer, now)


def verify_access_token(token: str, *, cfg: TokenConfig | None = None) -> Principal:
    """Validate `token` and return the principal it names.

    Raises
    ------
    AccessTokenVerificationError:
        `invalid_token` (signature/format/issuer), `expired`, `missing_id`
        or `invalid_role`.
    """
    cfg = cfg or load_token_config()
    if not token or not isinstance(token, str):
        raise AccessTokenVerificationError("invalid_token")
    try:
        claims = _decode(token, cfg.secret, cfg.issuer)
    except JOSEError as exc:
        raise AccessTokenVerificationError("invalid_token") from exc

    _validate_temporal_claims(claims, AccessTokenVerificationError)

    user_id = claims.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise AccessTokenVerificationError("missing_id")
    try:
        role = Role.parse(claims.get("role"))
    except ValueError as exc:
        raise AccessTokenVerificationError("invalid_role") from exc
    return Principal(id=user_id, role=role)


def verify_refresh_token(token: str, *, cfg: TokenConfig | None = None) -> str:
    """Validate a refresh token and return the account id it names.

    Raises
    ------
    RefreshTokenVerificationError:
        `invalid_token` (signature/format/issuer/type), `expired` or
        `missing_id`.
    """
    cfg = cfg or load_token_config()
    if not token or not isinstance(token, str):
        raise RefreshTokenVerificationError("invalid_token")
    try:
        claims = _decode(token, cfg.refresh_secret, cfg.issuer)
    except JOSEError as exc:
        raise RefreshTokenVerificationError("invalid_token") from exc
    if claims.get("typ") != REFRESH_TOKEN_TYPE:
        raise RefreshTokenVerificationError("invalid_token")

    _validate_temporal_claims(claims, RefreshTokenVerificationError)

    user_id = claims.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise RefreshTokenVerificationError("missing_id")
    return user_id


def _validate_temporal_claims(claims: Dict[str, object], error_cls) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise error_cls("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise error_cls("expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise error_cls("invalid_token")
