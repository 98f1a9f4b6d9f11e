"""
Synchronization Module
"""
from .reconciler import CacheReconciler, SyncResult, SyncState, decide_sync_state
from .remote_store import PageCursor, RemoteStore, SqlRemoteStore
from .snapshot_cache import (
    MemorySnapshotCache,
    RedisSnapshotCache,
    SnapshotCache,
    create_snapshot_cache,
    snapshot_key,
)

__all__ = [
    "CacheReconciler",
    "SyncResult",
    "SyncState",
    "decide_sync_state",
    "PageCursor",
    "RemoteStore",
    "SqlRemoteStore",
    "MemorySnapshotCache",
    "RedisSnapshotCache",
    "SnapshotCache",
    "create_snapshot_cache",
    "snapshot_key",
]
