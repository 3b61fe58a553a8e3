from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request

from sqlite_sessions.config.loader import get_bool_env, get_int_env, get_str_env

from .constants import DEFAULT_TABLE, FIVE_MINUTES, ONE_DAY
from .schemas import StoreOptions
from .store import SQLiteSessionStore
from .tenancy import SitesPathPolicy

logger = logging.getLogger(__name__)

_SESSION_STORE: Optional[SQLiteSessionStore] = None


def initialise_session_store() -> SQLiteSessionStore:
    """Create session store instance using configuration."""
    global _SESSION_STORE
    if _SESSION_STORE is not None:
        return _SESSION_STORE

    options = StoreOptions(
        table=get_str_env("SESSION_TABLE", DEFAULT_TABLE),
        db=get_str_env("SESSION_DB"),
        dir=get_str_env("SESSION_DIR", "."),
        concurrent_db=get_bool_env("SESSION_CONCURRENT_DB", False),
    )
    sites_root = get_str_env("SESSION_SITES_ROOT")
    store = SQLiteSessionStore(
        options,
        tenant_path_policy=SitesPathPolicy(root=sites_root) if sites_root else None,
        purge_interval=get_int_env("SESSION_PURGE_INTERVAL_MS", ONE_DAY),
        checkpoint_interval=get_int_env("SESSION_CHECKPOINT_INTERVAL_MS", FIVE_MINUTES),
    )
    _SESSION_STORE = store
    logger.info("Initialised session store with table %s in %s", options.table, options.dir)
    return store


def set_session_store(store: Optional[SQLiteSessionStore]) -> None:
    global _SESSION_STORE
    _SESSION_STORE = store


def get_session_store(_: SQLiteSessionStore = Depends(initialise_session_store)) -> SQLiteSessionStore:
    if _SESSION_STORE is None:
        raise RuntimeError("Session store has not been initialised")
    return _SESSION_STORE


def get_tenant_context(request: Request) -> Optional[Request]:
    """Return the request as tenant context when multi-tenant routing is enabled."""
    if not get_bool_env("SESSION_MULTI_TENANT", False):
        return None
    return request
