"""
Analytics API Endpoints

Synchronizes an owner's records and returns the period report.
"""

from datetime import date
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from salespulse.analytics.orchestrator import analyze
from salespulse.config import get_settings
from salespulse.config.logging import owner_context
from salespulse.data.records import PeriodWindow
from salespulse.sync.reconciler import CacheReconciler
from salespulse.sync.remote_store import SqlRemoteStore
from salespulse.sync.snapshot_cache import SnapshotCache, create_snapshot_cache

router = APIRouter()
logger = structlog.get_logger(__name__)
settings = get_settings()

_snapshot_cache: Optional[SnapshotCache] = None


def get_snapshot_cache() -> SnapshotCache:
    """Shared snapshot cache, so the in-memory backend survives between requests"""
    global _snapshot_cache
    if _snapshot_cache is None:
        _snapshot_cache = create_snapshot_cache()
    return _snapshot_cache


def get_reconciler(snapshot_cache: SnapshotCache = Depends(get_snapshot_cache)) -> CacheReconciler:
    return CacheReconciler(SqlRemoteStore(), snapshot_cache)


class ReportRequest(BaseModel):
    """Report window; the comparison window defaults to the preceding period"""
    start_date: date
    end_date: date
    comparison_start_date: Optional[date] = None
    comparison_end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_windows(self) -> "ReportRequest":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if (self.comparison_start_date is None) != (self.comparison_end_date is None):
            raise ValueError("comparison_start_date and comparison_end_date must be given together")
        if self.comparison_start_date and self.comparison_start_date > self.comparison_end_date:
            raise ValueError("comparison_start_date must not be after comparison_end_date")
        return self

    def current_window(self) -> PeriodWindow:
        return PeriodWindow(self.start_date, self.end_date)

    def comparison_window(self) -> Optional[PeriodWindow]:
        if self.comparison_start_date is None:
            return None
        return PeriodWindow(self.comparison_start_date, self.comparison_end_date)


class SyncResponse(BaseModel):
    """Outcome of a synchronization"""
    owner_id: str
    state: str
    records: int
    remote_batch_count: int
    fetched: int
    pages: int
    duration_seconds: float


class ReportResponse(BaseModel):
    """Analysis report with the sync that preceded it"""
    sync: SyncResponse
    values: Dict[str, Any]
    series: Dict[str, Any]


@router.post("/{owner_id}/sync", response_model=SyncResponse)
async def sync_owner(
    owner_id: str,
    reconciler: CacheReconciler = Depends(get_reconciler),
) -> SyncResponse:
    """Bring the owner's snapshot up to date without analysing it"""
    with owner_context(owner_id):
        result = await reconciler.reconcile(owner_id)
    return SyncResponse(
        owner_id=owner_id,
        state=result.state.value,
        records=len(result.records),
        remote_batch_count=result.remote_batch_count,
        fetched=result.fetched,
        pages=result.pages,
        duration_seconds=result.duration_seconds,
    )


@router.post("/{owner_id}/report", response_model=ReportResponse)
async def build_report(
    owner_id: str,
    request: ReportRequest,
    reconciler: CacheReconciler = Depends(get_reconciler),
) -> ReportResponse:
    """
    Synchronize the owner's records, then analyse the requested window.

    A failed synchronization surfaces as 503; no partial report is built.
    """
    with owner_context(owner_id):
        result = await reconciler.reconcile(owner_id)
        bag = analyze(
            result.records,
            request.current_window(),
            request.comparison_window(),
            settings.analytics,
        )
    report = bag.to_dict()

    logger.info(
        "Report built",
        owner_id=owner_id,
        state=result.state.value,
        records=len(result.records),
        start_date=str(request.start_date),
        end_date=str(request.end_date),
    )

    return ReportResponse(
        sync=SyncResponse(
            owner_id=owner_id,
            state=result.state.value,
            records=len(result.records),
            remote_batch_count=result.remote_batch_count,
            fetched=result.fetched,
            pages=result.pages,
            duration_seconds=result.duration_seconds,
        ),
        values=report["values"],
        series=report["series"],
    )
