"""
Background workers for non-blocking operations.

Provides QThread-based workers for:
- Sync planning
- Sync execution

All workers use Qt signals for thread-safe communication
with the calling thread.
"""

from droidsync.workers.base_worker import (
    BaseWorker,
    ProgressInfo,
    WorkerSignals,
    WorkerState,
    WorkerThread,
)
from droidsync.workers.sync_worker import (
    SyncPlanWorker,
    SyncWorker,
)

__all__ = [
    # Base
    'BaseWorker',
    'ProgressInfo',
    'WorkerSignals',
    'WorkerState',
    'WorkerThread',
    # Sync
    'SyncPlanWorker',
    'SyncWorker',
]
