"""
Domain Records

Canonical shapes shared by ingestion, synchronization and analytics:
- SalesRecord: one sold line item
- CacheSnapshot: the locally persisted record set and its sync cursor
- PeriodWindow: an inclusive date window used to slice records
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Union


@dataclass(frozen=True)
class SalesRecord:
    """One sold line item. Line items sharing a bill_number form one check."""
    bill_number: str
    timestamp: datetime
    branch: str
    channel: str
    category_group: str
    item_name: str
    quantity: int
    unit_price: float
    net_revenue: float
    customer_name: Optional[str] = None


def utc_now() -> datetime:
    """Current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def latest_timestamp(records: Iterable[SalesRecord]) -> Optional[datetime]:
    """Max timestamp across records, None when there are none"""
    latest = None
    for record in records:
        if latest is None or record.timestamp > latest:
            latest = record.timestamp
    return latest


@dataclass
class CacheSnapshot:
    """
    Locally persisted view of an owner's full record set.

    latest_record_timestamp is the incremental-fetch cursor. A snapshot
    without a genuine datetime cursor cannot be topped up incrementally.
    """
    records: List[SalesRecord]
    source_batch_count: int
    captured_at: datetime
    latest_record_timestamp: Optional[datetime] = None

    @classmethod
    def build(
        cls,
        records: List[SalesRecord],
        source_batch_count: int,
        captured_at: Optional[datetime] = None,
    ) -> "CacheSnapshot":
        """Create a snapshot with the cursor recomputed from records"""
        return cls(
            records=records,
            source_batch_count=source_batch_count,
            captured_at=captured_at or utc_now(),
            latest_record_timestamp=latest_timestamp(records),
        )

    @property
    def has_valid_cursor(self) -> bool:
        return isinstance(self.latest_record_timestamp, datetime)


DateLike = Union[date, datetime]


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _shift_year(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year + years, day=28)


@dataclass(frozen=True)
class PeriodWindow:
    """
    Inclusive analysis window.

    The end is normalized to the last microsecond of its day so that every
    record sold on the end date falls inside the window.

    Example:
        window = PeriodWindow(date(2025, 1, 1), date(2025, 1, 31))
        window.contains(datetime(2025, 1, 31, 22, 15))  # True
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        start = _as_datetime(self.start)
        end = datetime.combine(_as_datetime(self.end).date(), time.max)
        if start > end:
            raise ValueError(f"Window start {start} is after end {end}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def days(self) -> int:
        """Number of calendar days covered"""
        return (self.end.date() - self.start.date()).days + 1

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def previous_period(self) -> "PeriodWindow":
        """Window of the same length ending the day before this one starts"""
        prev_end = self.start.date() - timedelta(days=1)
        prev_start = prev_end - timedelta(days=self.days - 1)
        return PeriodWindow(prev_start, prev_end)

    def shift_years(self, years: int) -> "PeriodWindow":
        """Same calendar window, shifted by whole years"""
        return PeriodWindow(
            _shift_year(self.start.date(), years),
            _shift_year(self.end.date(), years),
        )

    @classmethod
    def month_of(cls, day: DateLike) -> "PeriodWindow":
        """Calendar month containing day"""
        day = _as_datetime(day).date()
        last_day = calendar.monthrange(day.year, day.month)[1]
        return cls(day.replace(day=1), day.replace(day=last_day))

    def previous_month(self) -> "PeriodWindow":
        """Calendar month before the one this window starts in"""
        return PeriodWindow.month_of(self.start.date().replace(day=1) - timedelta(days=1))
