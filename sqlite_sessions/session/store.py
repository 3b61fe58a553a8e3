from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

from .base import Callback
from .codec import compute_expiry, cookie_expires_ms, decode_session, encode_session
from .constants import FIVE_MINUTES, ONE_DAY
from .models import ConnectionHandle
from .registry import ConnectionRegistry
from .schemas import StoreOptions
from .sweeper import SessionSweeper
from .tenancy import PathPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now_ms() -> int:
    return int(time.time() * 1000)


class SQLiteSessionStore:
    """Expiring session store backed by one SQLite file per tenant.

    Every operation reports through an optional ``callback(error, value)``
    and also returns the value. Faults raised while talking to the database
    are logged and handed to the callback instead of being raised; in that
    case the operation returns ``None``.

    Background maintenance starts when the store is built inside a running
    event loop, or otherwise on the first operation. ``close`` stops it.

    Pass ``request`` (any object with a ``headers`` mapping, or a header
    mapping itself) to route the call to the tenant named by its host.
    """

    def __init__(
        self,
        options: Union[StoreOptions, Mapping[str, Any], None] = None,
        *,
        path_policy: Optional[PathPolicy] = None,
        tenant_path_policy: Optional[PathPolicy] = None,
        clock: Optional[Callable[[], int]] = None,
        purge_interval: int = ONE_DAY,
        checkpoint_interval: int = FIVE_MINUTES,
    ) -> None:
        if options is None:
            options = StoreOptions()
        elif not isinstance(options, StoreOptions):
            options = StoreOptions.model_validate(options)
        self._options = options
        self._clock = clock or _now_ms
        self._registry = ConnectionRegistry(
            options,
            path_policy=path_policy,
            tenant_path_policy=tenant_path_policy,
        )
        self._sweeper = SessionSweeper(
            self._registry,
            clock=self._clock,
            purge_interval=purge_interval,
            checkpoint_interval=checkpoint_interval,
        )
        self._closed = False
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the first operation starts the sweeper.
            pass
        else:
            self._sweeper.start()

    @property
    def options(self) -> StoreOptions:
        return self._options

    @property
    def table(self) -> str:
        return self._options.table

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def sweeper(self) -> SessionSweeper:
        return self._sweeper

    async def init(self) -> None:
        """Start background maintenance explicitly and reopen the store after ``close``."""
        self._closed = False
        self._sweeper.start()
        logger.info("Session store initialised (table=%s, dir=%s)", self.table, self._options.dir)

    async def close(self) -> None:
        self._closed = True
        await self._sweeper.stop()
        await asyncio.to_thread(self._registry.close)
        logger.info("Session store closed")

    async def __aenter__(self) -> "SQLiteSessionStore":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def get(self, sid: str, callback: Optional[Callback] = None, *, request: Any = None) -> Optional[dict[str, Any]]:
        def _get() -> Optional[dict[str, Any]]:
            handle = self._registry.resolve(request)
            row = self._fetchone(
                handle,
                f"SELECT sess FROM {self.table} WHERE sid = ? AND ? <= expired",
                (sid, self._clock()),
            )
            if row is None:
                return None
            return decode_session(row[0])

        return await self._run("get", sid, _get, callback)

    async def set(
        self,
        sid: str,
        sess: Mapping[str, Any],
        callback: Optional[Callback] = None,
        *,
        request: Any = None,
    ) -> Optional[bool]:
        def _set() -> bool:
            expired = compute_expiry(sess, self._clock())
            payload = encode_session(sess)
            handle = self._registry.resolve(request)
            with handle.lock:
                handle.connection.execute(
                    f"INSERT OR REPLACE INTO {self.table} (sid, expired, sess) VALUES (?, ?, ?)",
                    (sid, expired, payload),
                )
                if not handle.checkpoint_pending:
                    handle.connection.execute("PRAGMA wal_checkpoint(FULL)").fetchall()
                    handle.checkpoint_pending = True
                    logger.debug("Forced WAL checkpoint for tenant %s", handle.key)
            return True

        return await self._run("set", sid, _set, callback)

    async def destroy(self, sid: str, callback: Optional[Callback] = None, *, request: Any = None) -> Optional[bool]:
        def _destroy() -> bool:
            handle = self._registry.resolve(request)
            self._execute(handle, f"DELETE FROM {self.table} WHERE sid = ?", (sid,))
            return True

        return await self._run("destroy", sid, _destroy, callback)

    async def touch(
        self,
        sid: str,
        sess: Optional[Mapping[str, Any]],
        callback: Optional[Callback] = None,
        *,
        request: Any = None,
    ) -> Optional[bool]:
        """Move the expiry of a live session to its ``cookie.expires``.

        Sessions without ``cookie.expires`` are ignored entirely: nothing is
        written and ``callback`` is not called. Expired rows are left alone.
        """
        if not _has_cookie_expires(sess):
            return None

        def _touch() -> bool:
            expires = cookie_expires_ms(sess)
            handle = self._registry.resolve(request)
            self._execute(
                handle,
                f"UPDATE {self.table} SET expired = ? WHERE sid = ? AND ? <= expired",
                (expires, sid, self._clock()),
            )
            return True

        return await self._run("touch", sid, _touch, callback)

    async def length(self, callback: Optional[Callback] = None, *, request: Any = None) -> Optional[int]:
        def _length() -> int:
            handle = self._registry.resolve(request)
            row = self._fetchone(handle, f"SELECT COUNT(*) FROM {self.table}")
            return int(row[0]) if row else 0

        return await self._run("length", None, _length, callback)

    async def clear(self, callback: Optional[Callback] = None, *, request: Any = None) -> Optional[bool]:
        def _clear() -> bool:
            handle = self._registry.resolve(request)
            self._execute(handle, f"DELETE FROM {self.table}")
            return True

        return await self._run("clear", None, _clear, callback)

    async def all(self, callback: Optional[Callback] = None, *, request: Any = None) -> Optional[dict[str, dict[str, Any]]]:
        def _all() -> dict[str, dict[str, Any]]:
            handle = self._registry.resolve(request)
            with handle.lock:
                rows = handle.connection.execute(
                    f"SELECT sid, sess FROM {self.table} WHERE ? <= expired",
                    (self._clock(),),
                ).fetchall()
            return {sid: decode_session(sess) for sid, sess in rows}

        return await self._run("all", None, _all, callback)

    async def _run(
        self,
        operation: str,
        sid: Optional[str],
        work: Callable[[], T],
        callback: Optional[Callback],
    ) -> Optional[T]:
        if not self._closed and not self._sweeper.running:
            self._sweeper.start()
        try:
            result = await asyncio.to_thread(work)
        except Exception as exc:  # noqa: BLE001 - faults are reported through the callback
            logger.warning("Session %s failed (sid=%s): %s", operation, sid, exc)
            await _notify(callback, exc, None)
            return None
        logger.debug("Session %s completed (sid=%s)", operation, sid)
        await _notify(callback, None, result)
        return result

    @staticmethod
    def _execute(handle: ConnectionHandle, query: str, params: tuple = ()) -> None:
        with handle.lock:
            handle.connection.execute(query, params)

    @staticmethod
    def _fetchone(handle: ConnectionHandle, query: str, params: tuple = ()) -> Optional[tuple[Any, ...]]:
        with handle.lock:
            cursor = handle.connection.execute(query, params)
            return cursor.fetchone()


def _has_cookie_expires(sess: Optional[Mapping[str, Any]]) -> bool:
    if not isinstance(sess, Mapping):
        return False
    cookie = sess.get("cookie")
    return isinstance(cookie, Mapping) and bool(cookie.get("expires"))


async def _notify(callback: Optional[Callback], error: Optional[BaseException], value: Any) -> None:
    if callback is None:
        return
    outcome = callback(error, value)
    if inspect.isawaitable(outcome):
        await outcome
