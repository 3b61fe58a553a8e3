"""Expiring SQLite session storage, one database per tenant."""

from .base import SessionStoreProtocol
from .errors import InvalidTenantError, SessionDecodeError, SessionEncodeError, SessionStoreError
from .registry import ConnectionRegistry
from .schemas import StoreOptions
from .store import SQLiteSessionStore
from .sweeper import SessionSweeper
from .tenancy import SitesPathPolicy, default_path_policy

__all__ = [
    "ConnectionRegistry",
    "InvalidTenantError",
    "SQLiteSessionStore",
    "SessionDecodeError",
    "SessionEncodeError",
    "SessionStoreError",
    "SessionStoreProtocol",
    "SessionSweeper",
    "SitesPathPolicy",
    "StoreOptions",
    "default_path_policy",
]
