"""
Cache Reconciler

Keeps the local snapshot of an owner's records in step with the remote
store while transferring as little as possible.

States, decided on every "all data" request:
- COLD_START: no usable snapshot, rebuild from scratch
- VALID: batch counts match, serve the snapshot without any fetch
- INCREMENTAL: new batches exist, fetch only records newer than the cursor
- FULL_REBUILD: nothing uploaded (terminal), or counts went backwards
"""

import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

import structlog

from salespulse.config import get_settings
from salespulse.data.records import CacheSnapshot, SalesRecord
from salespulse.exceptions import SchemaMismatchError, SyncError
from salespulse.ingestion.normalizer import record_from_document
from salespulse.sync.remote_store import PageCursor, RemoteStore
from salespulse.sync.snapshot_cache import SnapshotCache, snapshot_key

logger = structlog.get_logger(__name__)
settings = get_settings()

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


class SyncState(str, Enum):
    """Reconciliation decision"""
    COLD_START = "cold_start"
    VALID = "valid"
    INCREMENTAL = "incremental"
    FULL_REBUILD = "full_rebuild"


@dataclass
class SyncResult:
    """Outcome of one reconciliation"""
    state: SyncState
    records: List[SalesRecord]
    remote_batch_count: int
    fetched: int = 0
    pages: int = 0
    duration_seconds: float = 0.0


def decide_sync_state(snapshot: Optional[CacheSnapshot], remote_batch_count: int) -> SyncState:
    """Pick the reconciliation strategy for a snapshot and the remote batch count"""
    if remote_batch_count == 0:
        return SyncState.FULL_REBUILD
    if snapshot is None or not snapshot.has_valid_cursor:
        return SyncState.COLD_START
    if snapshot.source_batch_count == remote_batch_count:
        return SyncState.VALID
    if remote_batch_count > snapshot.source_batch_count:
        return SyncState.INCREMENTAL
    return SyncState.FULL_REBUILD


@dataclass
class _FetchProgress:
    total: int
    fetched: int = 0
    pages: int = 0
    records: List[SalesRecord] = field(default_factory=list)


class CacheReconciler:
    """
    Reconciles the local snapshot cache against the remote record store.

    Pages are fetched one at a time because each request's cursor is the
    last document of the previous page.

    Example:
        reconciler = CacheReconciler(SqlRemoteStore(), RedisSnapshotCache())
        records = await reconciler.synchronize("owner-1", on_progress)
    """

    def __init__(
        self,
        remote_store: RemoteStore,
        snapshot_cache: SnapshotCache,
        page_size: Optional[int] = None,
    ):
        self.remote_store = remote_store
        self.snapshot_cache = snapshot_cache
        self.page_size = page_size or settings.sync.page_size

    async def _load_snapshot(self, key: str) -> Optional[CacheSnapshot]:
        try:
            return await self.snapshot_cache.get(key)
        except SchemaMismatchError as e:
            logger.warning("Cached snapshot has an unrecognized shape, rebuilding", key=key, reason=str(e))
            return None
        except Exception as e:
            # unreadable cache means cold start
            logger.error("Failed to read snapshot, rebuilding", key=key, error=str(e), error_type=type(e).__name__)
            return None

    async def _store_snapshot(self, key: str, snapshot: CacheSnapshot) -> None:
        try:
            await self.snapshot_cache.put(key, snapshot)
        except Exception as e:
            # records are already in hand, a failed write only costs a refetch next time
            logger.error("Failed to write snapshot", key=key, error=str(e), error_type=type(e).__name__)

    @staticmethod
    async def _report(progress_callback: Optional[ProgressCallback], fetched: int, total: int) -> None:
        if progress_callback is None:
            return
        outcome = progress_callback(fetched, total)
        if inspect.isawaitable(outcome):
            await outcome

    async def _fetch_pages(
        self,
        owner_id: str,
        after: Optional[datetime],
        progress_callback: Optional[ProgressCallback],
    ) -> _FetchProgress:
        """
        Cursor-paginate the remote store up to the count observed at the start.

        The total is read once, so records arriving mid-fetch are left for the
        next sync instead of stretching this one.
        """
        try:
            total = await self.remote_store.count_records(owner_id, after=after)
        except Exception as e:
            raise SyncError(f"Could not count remote records for '{owner_id}': {e}", owner_id=owner_id) from e

        progress = _FetchProgress(total=total)
        cursor: Optional[PageCursor] = None

        while progress.fetched < total:
            limit = min(self.page_size, total - progress.fetched)
            try:
                page = await self.remote_store.query_records(
                    owner_id, after=after, cursor=cursor, limit=limit
                )
                decoded = [record_from_document(doc) for doc in page]
            except Exception as e:
                raise SyncError(
                    f"Page {progress.pages + 1} failed for '{owner_id}' after {progress.fetched}/{total} records: {e}",
                    owner_id=owner_id,
                    fetched=progress.fetched,
                    total=total,
                ) from e

            if not page:
                break

            progress.records.extend(decoded)
            progress.fetched += len(decoded)
            progress.pages += 1
            cursor = PageCursor.after_document(page[-1])

            logger.debug("Fetched page", owner_id=owner_id, page=progress.pages, fetched=progress.fetched, total=total)
            await self._report(progress_callback, progress.fetched, total)

        return progress

    async def reconcile(
        self,
        owner_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncResult:
        """
        Bring the owner's snapshot up to date and return the full record set.

        Raises:
            SyncError: the remote store is unavailable or any page fetch fails;
                nothing is written to the cache in that case
        """
        started = time.perf_counter()
        key = snapshot_key(owner_id)

        try:
            remote_batch_count = await self.remote_store.count_batches(owner_id)
        except Exception as e:
            raise SyncError(f"Remote store unavailable for '{owner_id}': {e}", owner_id=owner_id) from e

        snapshot = await self._load_snapshot(key)
        state = decide_sync_state(snapshot, remote_batch_count)
        log = logger.bind(owner_id=owner_id, state=state.value, remote_batch_count=remote_batch_count)

        if remote_batch_count == 0:
            log.info("No uploaded data")
            return SyncResult(state=state, records=[], remote_batch_count=0)

        if state == SyncState.VALID:
            log.info("Snapshot is current", records=len(snapshot.records))
            return SyncResult(
                state=state,
                records=snapshot.records,
                remote_batch_count=remote_batch_count,
                duration_seconds=time.perf_counter() - started,
            )

        if state == SyncState.INCREMENTAL:
            progress = await self._fetch_pages(owner_id, snapshot.latest_record_timestamp, progress_callback)
            records = snapshot.records + progress.records
        else:
            progress = await self._fetch_pages(owner_id, None, progress_callback)
            records = progress.records

        await self._store_snapshot(key, CacheSnapshot.build(records, remote_batch_count))

        duration = time.perf_counter() - started
        log.info(
            "Sync completed",
            fetched=progress.fetched,
            pages=progress.pages,
            records=len(records),
            duration_seconds=round(duration, 3),
        )
        return SyncResult(
            state=state,
            records=records,
            remote_batch_count=remote_batch_count,
            fetched=progress.fetched,
            pages=progress.pages,
            duration_seconds=duration,
        )

    async def synchronize(
        self,
        owner_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[SalesRecord]:
        """Return the owner's full record set, syncing the cache as needed"""
        result = await self.reconcile(owner_id, progress_callback)
        return result.records
