"""Single-writer lease over a PostgreSQL session advisory lock."""
import logging

logger = logging.getLogger(__name__)

class AdvisoryLease:
    """Holds ``pg_try_advisory_lock(lock_id)`` on a dedicated connection.

    Session advisory locks belong to the connection that took them, so the
    connection stays checked out of the pool for as long as the lease is
    held. If the process dies the server drops the lock with the session.
    """

    def __init__(self, pool, lock_id: int):
        self.pool = pool
        self.lock_id = lock_id
        self._conn = None

    @property
    def held(self) -> bool:
        return self._conn is not None

    async def acquire(self) -> bool:
        """Try to take the lease without blocking.

        Returns:
            True if the lease is now held, False if another holder has it
        """
        if self._conn is not None:
            return True

        conn = await self.pool.acquire()
        try:
            acquired = await conn.fetchval('SELECT pg_try_advisory_lock($1)', self.lock_id)
        except Exception:
            await self.pool.release(conn)
            raise

        if not acquired:
            await self.pool.release(conn)
            logger.warning(f"Advisory lock {self.lock_id} is held by another indexer")
            return False

        self._conn = conn
        logger.info(f"Acquired advisory lock {self.lock_id}")
        return True

    async def release(self) -> None:
        if self._conn is None:
            return

        conn, self._conn = self._conn, None
        try:
            await conn.fetchval('SELECT pg_advisory_unlock($1)', self.lock_id)
            logger.info(f"Released advisory lock {self.lock_id}")
        except Exception as e:
            logger.error(f"Failed to release advisory lock {self.lock_id}: {e}")
        finally:
            await self.pool.release(conn)

    async def __aenter__(self):
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb):
        await self.release()
