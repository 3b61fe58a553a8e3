import asyncio

import pytest

from sqlite_sessions.session.store import SQLiteSessionStore
from sqlite_sessions.session.tenancy import SitesPathPolicy


def _sites_store(tmp_path, clock, **kwargs):
    return SQLiteSessionStore(
        {"dir": str(tmp_path)},
        tenant_path_policy=SitesPathPolicy(root=str(tmp_path / "sites")),
        clock=clock,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_purge_covers_every_tenant(tmp_path, clock, wait_for_first_purge):
    store = _sites_store(tmp_path, clock)
    await wait_for_first_purge(store)
    tenant_a = {"host": "a.example.com:8080"}
    tenant_b = {"host": "b.example.com"}
    try:
        await store.set("old", {"cookie": {"maxAge": 1000}}, request=tenant_a)
        await store.set("new", {"cookie": {}}, request=tenant_a)
        await store.set("old", {"cookie": {"maxAge": 1000}}, request=tenant_b)
        clock.advance(1500)

        assert store.sweeper.purge_expired() == 2
        assert await store.length(request=tenant_a) == 1
        assert await store.length(request=tenant_b) == 0
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_purge_keeps_rows_expiring_now(store, clock, stored_expiry, t0):
    await store.set("edge", {"cookie": {"maxAge": 1000}})
    clock.now = t0 + 1000

    assert store.sweeper.purge_expired() == 0
    assert stored_expiry(store, "edge") == t0 + 1000


@pytest.mark.asyncio
async def test_failing_tenant_does_not_stop_the_sweep(tmp_path, clock, wait_for_first_purge):
    store = _sites_store(tmp_path, clock)
    await wait_for_first_purge(store)
    broken = {"host": "broken.example.com"}
    healthy = {"host": "healthy.example.com"}
    try:
        await store.set("old", {"cookie": {"maxAge": 1000}}, request=broken)
        await store.set("old", {"cookie": {"maxAge": 1000}}, request=healthy)
        store.registry.resolve(broken).connection.close()
        clock.advance(1500)

        assert store.sweeper.purge_expired() == 1
        assert await store.length(request=healthy) == 0
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_construction_in_running_loop_starts_sweeper(tmp_path, clock, wait_for_first_purge):
    store = SQLiteSessionStore({"dir": str(tmp_path)}, clock=clock)
    try:
        assert store.sweeper.running
        await wait_for_first_purge(store)
        assert store.sweeper.last_purge == clock()
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_first_operation_starts_sweeper(idle_store, clock, t0, wait_for_first_purge):
    handle = idle_store.registry.resolve()
    handle.connection.execute(
        f"INSERT INTO {idle_store.table} (sid, expired, sess) VALUES (?, ?, ?)",
        ("stale", t0 - 1, "{}"),
    )
    assert not idle_store.sweeper.running

    try:
        assert await idle_store.get("stale") is None
        assert idle_store.sweeper.running
        await wait_for_first_purge(idle_store)
        assert await idle_store.length() == 0
    finally:
        await idle_store.close()


@pytest.mark.asyncio
async def test_closed_store_does_not_restart_sweeper(idle_store):
    await idle_store.close()

    await idle_store.length()

    assert not idle_store.sweeper.running


@pytest.mark.asyncio
async def test_periodic_tasks_run_and_stop(tmp_path, clock):
    store = SQLiteSessionStore(
        {"dir": str(tmp_path)},
        clock=clock,
        purge_interval=20,
        checkpoint_interval=10,
    )
    async with store:
        await store.set("abc", {"cookie": {"maxAge": 1000}})
        handle = store.registry.resolve()
        handle.checkpoint_pending = True
        assert store.sweeper.running

        clock.advance(1500)
        for _ in range(50):
            if not handle.checkpoint_pending and await store.length() == 0:
                break
            await asyncio.sleep(0.01)

        assert handle.checkpoint_pending is False
        assert await store.length() == 0

    assert not store.sweeper.running
    assert len(store.registry) == 0


@pytest.mark.asyncio
async def test_start_is_idempotent(store):
    await store.init()
    tasks = list(store.sweeper._tasks)

    store.sweeper.start()

    assert store.sweeper._tasks == tasks
