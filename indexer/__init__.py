"""Indexer package: block sync engine, persistence store and event bus.

This package provides:
- SyncEngine for sequential, reorg-checked block ingestion
- IndexerStore holding every SQL statement the indexer runs
- AdvisoryLease for single-writer coordination
- EventBus and ZmqPublisher for real-time notifications
"""
from .events import CHANNELS, EventBus, ZmqPublisher
from .lease import AdvisoryLease
from .state import SyncState, TaskState
from .store import IndexerStore
from .sync import ConsistencyError, ReorgDetectedError, SyncEngine

# Export public interface
__all__ = [
    'SyncEngine',
    'ConsistencyError',
    'ReorgDetectedError',
    'IndexerStore',
    'AdvisoryLease',
    'EventBus',
    'ZmqPublisher',
    'CHANNELS',
    'SyncState',
    'TaskState',
]
