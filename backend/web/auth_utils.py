"""
Shared authentication utilities.

Why:
    The renewed access cookie must carry the same flags the login service
    sets, and those depend on the environment. Keeping the policy in one pure
    helper makes it testable without a running app.
"""

from __future__ import annotations

from .config import _is_prod_like


def cookie_opts(environment: str) -> dict:
    """Return cookie flags for session cookies.

    Returns a mapping with keys:
      - secure: True in prod-like environments (TLS only)
      - samesite: "strict" in prod-like environments, "lax" in development
    """
    prod = _is_prod_like(environment)
    return {"secure": prod, "samesite": "strict" if prod else "lax"}
