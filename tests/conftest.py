import asyncio

import pytest
import pytest_asyncio

from sqlite_sessions.session.store import SQLiteSessionStore

T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, *args) -> None:
        self.calls.append(args)


async def _wait_for_first_purge(session_store: SQLiteSessionStore) -> None:
    for _ in range(100):
        if session_store.sweeper.last_purge is not None:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("session sweeper never ran its initial purge")


def _stored_expiry(session_store: SQLiteSessionStore, sid: str, request=None):
    handle = session_store.registry.resolve(request)
    row = handle.connection.execute(
        f"SELECT expired FROM {session_store.table} WHERE sid = ?", (sid,)
    ).fetchone()
    return row[0] if row else None


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def stored_expiry():
    return _stored_expiry


@pytest.fixture
def wait_for_first_purge():
    return _wait_for_first_purge


@pytest_asyncio.fixture
async def store(tmp_path, clock):
    session_store = SQLiteSessionStore({"dir": str(tmp_path)}, clock=clock)
    await _wait_for_first_purge(session_store)
    yield session_store
    await session_store.close()


@pytest.fixture
def idle_store(tmp_path, clock):
    """A store built outside any event loop, so its sweeper has not started."""
    session_store = SQLiteSessionStore({"dir": str(tmp_path)}, clock=clock)
    yield session_store
    session_store.registry.close()
