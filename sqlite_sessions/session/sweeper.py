from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Callable, Optional

from .constants import FIVE_MINUTES, ONE_DAY
from .models import ConnectionHandle
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodic maintenance over every open tenant database.

    Two independent loops run on the event loop: a purge of expired rows
    (immediately, then every ``purge_interval`` ms) and a reset of each
    handle's checkpoint flag (every ``checkpoint_interval`` ms).
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        clock: Callable[[], int],
        purge_interval: int = ONE_DAY,
        checkpoint_interval: int = FIVE_MINUTES,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._purge_interval = purge_interval
        self._checkpoint_interval = checkpoint_interval
        self._tasks: list[asyncio.Task[None]] = []
        self.last_purge: Optional[int] = None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._purge_loop(), name="session-purge"),
            asyncio.create_task(self._checkpoint_loop(), name="session-checkpoint-reset"),
        ]
        logger.debug(
            "Session sweeper started (purge every %d ms, checkpoint reset every %d ms)",
            self._purge_interval,
            self._checkpoint_interval,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def purge_expired(self) -> int:
        """Delete expired rows from every open database and return the total removed."""
        now = self._clock()
        removed = 0
        for handle in self._registry.handles():
            try:
                removed += self._purge_handle(handle, now)
            except sqlite3.Error as exc:
                logger.warning("Failed to purge expired sessions for tenant %s: %s", handle.key, exc)
        self.last_purge = now
        logger.debug("Purged %d expired sessions", removed)
        return removed

    def reset_checkpoints(self) -> None:
        for handle in self._registry.handles():
            handle.checkpoint_pending = False

    def _purge_handle(self, handle: ConnectionHandle, now: int) -> int:
        table = self._registry.options.table
        with handle.lock:
            cursor = handle.connection.execute(f"DELETE FROM {table} WHERE ? > expired", (now,))
        return cursor.rowcount

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.to_thread(self.purge_expired)
            await asyncio.sleep(self._purge_interval / 1000)

    async def _checkpoint_loop(self) -> None:
        while True:
            await asyncio.sleep(self._checkpoint_interval / 1000)
            self.reset_checkpoints()
