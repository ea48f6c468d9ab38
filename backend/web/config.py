"""
Configuration and startup security checks for the access API.

Why: A misconfigured deployment (dev signing secret, in-memory store, TLS
disabled) silently weakens every guard. This module provides a single guard
that enforces minimal production safety constraints without burdening local
development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

_TRUE = {"1", "true", "yes"}
_FALSE = {"", "0", "false", "no"}


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("AUTOECOLE_ENV", "dev") or "dev").strip().lower()


def uniform_denials_enabled() -> bool:
    """When true, 404 denials are reported as 403 to hide resource existence."""
    return (os.getenv("ACCESS_UNIFORM_DENIALS", "false") or "").strip().lower() in _TRUE


def store_backend() -> str:
    return (os.getenv("SCHEDULING_STORE", "auto") or "auto").strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - JWT_SECRET and JWT_REFRESH_SECRET must be set, not CHANGE_ME
      placeholders, >= 32 chars, and different from each other.
    - DATABASE_URL / SCHEDULING_DATABASE_URL must not disable TLS.
    - SCHEDULING_STORE must not select the in-memory store.
    - ACCESS_UNIFORM_DENIALS must be a recognizable boolean.
    """
    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Token signing secrets (access and refresh must differ)
    secrets = {}
    for key in ("JWT_SECRET", "JWT_REFRESH_SECRET"):
        secret = (os.getenv(key, "") or "").strip()
        if not secret or secret.upper().startswith("CHANGE_ME"):
            raise SystemExit(
                f"Refusing to start: {key} is unset or a placeholder in production."
            )
        if len(secret) < 32:
            raise SystemExit(
                f"Refusing to start: {key} must be at least 32 characters in production."
            )
        secrets[key] = secret
    if secrets["JWT_SECRET"] == secrets["JWT_REFRESH_SECRET"]:
        raise SystemExit(
            "Refusing to start: JWT_REFRESH_SECRET must differ from JWT_SECRET."
        )

    # 2) Postgres TLS: basic guard to avoid explicit disable
    for key in ("DATABASE_URL", "SCHEDULING_DATABASE_URL"):
        if "sslmode=disable" in (os.getenv(key, "") or ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 3) Guards must read real relationships in prod
    if store_backend() == "memory":
        raise SystemExit(
            "Refusing to start: SCHEDULING_STORE=memory is not allowed in production/staging."
        )

    # 4) Ambiguous policy flags abort rather than guess
    raw = (os.getenv("ACCESS_UNIFORM_DENIALS", "") or "").strip().lower()
    if raw not in _TRUE | _FALSE:
        raise SystemExit(
            "Refusing to start: ACCESS_UNIFORM_DENIALS must be true or false."
        )
