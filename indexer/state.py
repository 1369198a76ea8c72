"""Shared run state for the long running indexer tasks."""
import asyncio
from enum import Enum

class SyncState(str, Enum):
    """Lifecycle states of the sync engine."""
    IDLE = 'idle'
    ACQUIRING_LEASE = 'acquiring_lease'
    LEASE_DENIED = 'lease_denied'
    POLLING = 'polling'
    INGESTING = 'ingesting'
    HALTED = 'halted'
    STOPPED = 'stopped'

    @property
    def is_terminal(self) -> bool:
        return self in (SyncState.LEASE_DENIED, SyncState.HALTED, SyncState.STOPPED)

class TaskState:
    """Cooperative stop signal passed into each loop.

    Loops check ``running`` at the top of every iteration and use ``wait``
    instead of ``asyncio.sleep`` so a stop request wakes them immediately.
    """

    def __init__(self):
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    async def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if woken by a stop request."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False
