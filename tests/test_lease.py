"""Tests for the advisory-lock lease."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexer.lease import AdvisoryLease

def make_pool(lock_granted=True):
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=lock_granted)
    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    return pool, conn

@pytest.mark.asyncio
async def test_acquire_keeps_connection_until_release():
    pool, conn = make_pool()
    lease = AdvisoryLease(pool, 7001)

    assert await lease.acquire() is True
    assert lease.held
    conn.fetchval.assert_awaited_once_with('SELECT pg_try_advisory_lock($1)', 7001)
    pool.release.assert_not_awaited()

    await lease.release()

    assert not lease.held
    conn.fetchval.assert_awaited_with('SELECT pg_advisory_unlock($1)', 7001)
    pool.release.assert_awaited_once_with(conn)

@pytest.mark.asyncio
async def test_denied_lease_returns_connection():
    pool, conn = make_pool(lock_granted=False)
    lease = AdvisoryLease(pool, 7001)

    assert await lease.acquire() is False
    assert not lease.held
    pool.release.assert_awaited_once_with(conn)

@pytest.mark.asyncio
async def test_acquire_is_reentrant():
    pool, conn = make_pool()
    lease = AdvisoryLease(pool, 7001)

    await lease.acquire()
    assert await lease.acquire() is True
    assert pool.acquire.await_count == 1

@pytest.mark.asyncio
async def test_release_returns_connection_when_unlock_fails():
    pool, conn = make_pool()
    lease = AdvisoryLease(pool, 7001)
    await lease.acquire()
    conn.fetchval.side_effect = ConnectionError("connection lost")

    await lease.release()

    assert not lease.held
    pool.release.assert_awaited_once_with(conn)

@pytest.mark.asyncio
async def test_release_without_lease_is_noop():
    pool, _ = make_pool()
    await AdvisoryLease(pool, 7001).release()
    pool.release.assert_not_awaited()

@pytest.mark.asyncio
async def test_context_manager():
    pool, conn = make_pool()

    async with AdvisoryLease(pool, 7001) as acquired:
        assert acquired is True

    pool.release.assert_awaited_once_with(conn)
