"""
Relationship store and account directory wiring for the web layer.

Why:
    Guards take the store as an explicit argument; the web layer still needs
    one instance to hand them. This module owns that single injectable slot so
    tests can swap implementations with `set_store` and nothing else holds
    ambient state.

Behavior:
    - SCHEDULING_STORE=memory  → in-memory store.
    - SCHEDULING_STORE=db      → Postgres store; failure to build is fatal.
    - SCHEDULING_STORE=auto    → Postgres when psycopg and a DSN are present,
      otherwise in-memory with a warning (local/offline work).
"""
from __future__ import annotations

import logging

from backend.identity_access.accounts import AccountDirectory, DBAccountDirectory, InMemoryAccountDirectory
from backend.scheduling.store import InMemoryRelationshipStore, RelationshipStore

from . import config

logger = logging.getLogger("autoecole.web")

try:
    from backend.scheduling.repo_db import DBRelationshipStore
except Exception as exc:  # pragma: no cover - optional dependency path
    DBRelationshipStore = None  # type: ignore
    _DB_STORE_IMPORT_ERROR = exc
else:
    _DB_STORE_IMPORT_ERROR = None


def build_default_store() -> RelationshipStore:
    """Select the store implementation from configuration."""
    backend = config.store_backend()
    if backend == "memory":
        return InMemoryRelationshipStore()
    if DBRelationshipStore is None:
        if backend == "db":
            raise RuntimeError(f"DB relationship store unavailable: {_DB_STORE_IMPORT_ERROR}")
        logger.warning("Relationship store import failed: %s", _DB_STORE_IMPORT_ERROR)
        return InMemoryRelationshipStore()
    try:
        return DBRelationshipStore()
    except Exception as exc:
        if backend == "db":
            raise
        logger.warning("Relationship store unavailable (%s); using in-memory fallback", exc)
        return InMemoryRelationshipStore()


_STORE: RelationshipStore | None = None


def get_store() -> RelationshipStore:
    global _STORE
    if _STORE is None:
        _STORE = build_default_store()
    return _STORE


def set_store(store: RelationshipStore | None) -> None:
    """Allow tests to swap the store; None re-resolves lazily."""
    global _STORE
    _STORE = store


# --- Account directory (session renewal) ---------------------------------------

def build_default_accounts() -> AccountDirectory:
    """Same selection rules as the relationship store (SCHEDULING_STORE)."""
    backend = config.store_backend()
    if backend == "memory":
        return InMemoryAccountDirectory()
    try:
        return DBAccountDirectory()
    except Exception as exc:
        if backend == "db":
            raise
        logger.warning("Account directory unavailable (%s); using in-memory fallback", exc)
        return InMemoryAccountDirectory()


_ACCOUNTS: AccountDirectory | None = None


def get_accounts() -> AccountDirectory:
    global _ACCOUNTS
    if _ACCOUNTS is None:
        _ACCOUNTS = build_default_accounts()
    return _ACCOUNTS


def set_accounts(accounts: AccountDirectory | None) -> None:
    """Allow tests to swap the directory; None re-resolves lazily."""
    global _ACCOUNTS
    _ACCOUNTS = accounts
