"""
Account directory used when a session is renewed from a refresh token.

Why:
    Refresh tokens name an account but carry no role. Renewal must reload the
    current role so a demoted or deleted account cannot keep its old access.

Behavior:
    - `find_account(user_id)` returns the account or None when it does not
      exist. Driver failures raise `StoreUnavailableError`, never None.
    - Postgres implementation opens one short-lived connection per lookup,
      like the relationship store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol
import asyncio
import logging
import os

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.scheduling.store import StoreUnavailableError

logger = logging.getLogger("autoecole.identity_access")


@dataclass(frozen=True)
class Account:
    id: str
    role: str
    email: Optional[str] = None


class AccountDirectory(Protocol):
    async def find_account(self, user_id: str) -> Optional[Account]: ...


class InMemoryAccountDirectory:
    """Dict-backed directory for tests and offline development."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}

    def add_account(self, user_id: str, role: str, email: Optional[str] = None) -> Account:
        account = Account(id=user_id, role=role, email=email)
        self.accounts[user_id] = account
        return account

    async def find_account(self, user_id: str) -> Optional[Account]:
        return self.accounts.get(user_id)


_SQL_ACCOUNT_BY_ID = "select id::text, role::text, email from public.users where id = %s limit 1"


class DBAccountDirectory:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBAccountDirectory")
        self._dsn = dsn or os.getenv("SCHEDULING_DATABASE_URL") or os.getenv("DATABASE_URL")
        if not self._dsn:
            raise RuntimeError("Database DSN unavailable for DBAccountDirectory")

    def _fetch(self, user_id: str):
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(_SQL_ACCOUNT_BY_ID, (user_id,))
                    return cur.fetchone()
        except Exception as exc:
            logger.warning("Account lookup failed: %s", exc.__class__.__name__)
            raise StoreUnavailableError("query_failed") from exc

    async def find_account(self, user_id: str) -> Optional[Account]:
        row = await asyncio.to_thread(self._fetch, user_id)
        if not row:
            return None
        return Account(id=row[0], role=row[1], email=row[2])


__all__ = ["Account", "AccountDirectory", "DBAccountDirectory", "InMemoryAccountDirectory"]
