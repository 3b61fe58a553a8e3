from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from .constants import DEFAULT_TENANT, MEMORY_MARKER
from .models import ConnectionHandle
from .schemas import StoreOptions
from .tenancy import PathPolicy, SitesPathPolicy, default_path_policy, tenant_key_from_context

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Owns one SQLite connection per tenant for the lifetime of the store.

    Connections are opened lazily on first use of a tenant key and reused
    afterwards. Sweeps iterate over :meth:`handles`, which returns a snapshot
    so tenants added concurrently never disturb an iteration in progress.
    """

    def __init__(
        self,
        options: StoreOptions,
        *,
        path_policy: Optional[PathPolicy] = None,
        tenant_path_policy: Optional[PathPolicy] = None,
    ) -> None:
        self._options = options
        self._path_policy = path_policy or default_path_policy
        self._tenant_path_policy = tenant_path_policy or SitesPathPolicy()
        self._handles: dict[str, ConnectionHandle] = {}
        self._lock = threading.Lock()

    @property
    def options(self) -> StoreOptions:
        return self._options

    def resolve(self, context: Any = None) -> ConnectionHandle:
        if context is None:
            return self._get_or_open(DEFAULT_TENANT, self._path_policy)
        key = tenant_key_from_context(context)
        return self._get_or_open(key, self._tenant_path_policy)

    def handles(self) -> list[ConnectionHandle]:
        with self._lock:
            return list(self._handles.values())

    def close(self) -> None:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            with handle.lock:
                handle.connection.close()
            logger.info("Closed session database for tenant %s", handle.key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._handles

    def _get_or_open(self, key: str, policy: PathPolicy) -> ConnectionHandle:
        handle = self._handles.get(key)
        if handle is not None:
            return handle
        with self._lock:
            handle = self._handles.get(key)
            if handle is None:
                path = policy(key, self._options)
                handle = ConnectionHandle(key=key, path=path, connection=self._open(path))
                self._handles[key] = handle
                logger.info("Opened session database for tenant %s at %s", key, path)
        return handle

    def _open(self, path: str) -> sqlite3.Connection:
        if MEMORY_MARKER not in path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(
            path,
            check_same_thread=False,
            isolation_level=None,
            uri=path.startswith("file:"),
        )
        try:
            if self._options.concurrent_db:
                connection.execute("PRAGMA journal_mode = WAL;")
            table = self._options.table
            connection.execute(
                f"CREATE TABLE IF NOT EXISTS {table} ("
                "sid TEXT PRIMARY KEY, expired INTEGER, sess TEXT)"
            )
            connection.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_expired ON {table}(expired)"
            )
        except sqlite3.Error:
            connection.close()
            raise
        return connection
