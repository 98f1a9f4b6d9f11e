"""
Aggregation Primitives

Records are aggregated as one polars frame. A BucketKey picks the group
key (hour, day, ISO week, month, year, weekday, or a dimension such as
branch) and a Metric picks the value, so one group_by backs every trend
chart.
"""

import math
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Sequence, Tuple, Union

import polars as pl

from salespulse.data.records import PeriodWindow, SalesRecord

Records = Union[pl.DataFrame, Iterable[SalesRecord]]

RECORD_SCHEMA = {
    "bill_number": pl.Utf8,
    "timestamp": pl.Datetime("us"),
    "branch": pl.Utf8,
    "channel": pl.Utf8,
    "category_group": pl.Utf8,
    "item_name": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
    "net_revenue": pl.Float64,
    "customer_name": pl.Utf8,
}


def to_frame(records: Records) -> pl.DataFrame:
    """
    Records as a polars DataFrame with RECORD_SCHEMA columns.

    A DataFrame is returned unchanged, so callers can convert once and
    pass the frame around.
    """
    if isinstance(records, pl.DataFrame):
        return records
    records = list(records)
    return pl.DataFrame(
        {column: [getattr(record, column) for record in records] for column in RECORD_SCHEMA},
        schema=RECORD_SCHEMA,
    )


# 0 = Monday ... 6 = Sunday, matching datetime.weekday()
WEEKDAY = (pl.col("timestamp").dt.weekday() - 1).cast(pl.Int64)
HOUR = pl.col("timestamp").dt.hour().cast(pl.Int64)


@dataclass
class AggregationBucket:
    """Revenue, quantity and distinct bills collected under one key"""
    key: Hashable
    revenue: float = 0.0
    quantity: int = 0
    unique_checks: int = 0

    @property
    def average_per_check(self) -> float:
        return self.revenue / self.unique_checks if self.unique_checks else 0.0


# =============================================================================
# BUCKET KEYS
# =============================================================================

class BucketKey:
    """
    Group key that works on a frame and on a single record.

    columns maps output column names to polars expressions; a key with
    more than one column yields tuple keys.

    Example:
        day_bucket(record)                      # date(2025, 1, 8)
        frame.group_by(day_bucket.expressions)  # one row per day
    """

    def __init__(self, fn: Callable[[SalesRecord], Hashable], **columns: pl.Expr):
        self._fn = fn
        self.columns = columns

    def __call__(self, record: SalesRecord) -> Hashable:
        return self._fn(record)

    @property
    def names(self) -> List[str]:
        return list(self.columns)

    @property
    def expressions(self) -> List[pl.Expr]:
        return [expr.alias(name) for name, expr in self.columns.items()]

    def key_of(self, row: Mapping[str, Any]) -> Hashable:
        if len(self.columns) == 1:
            return row[self.names[0]]
        return tuple(row[name] for name in self.names)


hour_bucket = BucketKey(lambda r: r.timestamp.hour, hour=HOUR)
day_bucket = BucketKey(lambda r: r.timestamp.date(), day=pl.col("timestamp").dt.date())
iso_week_bucket = BucketKey(
    lambda r: r.timestamp.date() - timedelta(days=r.timestamp.weekday()),
    week=pl.col("timestamp").dt.truncate("1w").dt.date(),
)
month_bucket = BucketKey(
    lambda r: f"{r.timestamp.year:04d}-{r.timestamp.month:02d}",
    month=pl.col("timestamp").dt.strftime("%Y-%m"),
)
year_bucket = BucketKey(lambda r: r.timestamp.year, year=pl.col("timestamp").dt.year().cast(pl.Int64))
weekday_bucket = BucketKey(lambda r: r.timestamp.weekday(), weekday=WEEKDAY)
weekday_hour_bucket = BucketKey(lambda r: (r.timestamp.weekday(), r.timestamp.hour), weekday=WEEKDAY, hour=HOUR)

branch_key = BucketKey(lambda r: r.branch, branch=pl.col("branch"))
channel_key = BucketKey(lambda r: r.channel, channel=pl.col("channel"))
category_key = BucketKey(lambda r: r.category_group, category_group=pl.col("category_group"))
item_key = BucketKey(lambda r: r.item_name, item_name=pl.col("item_name"))


class BucketGrain(str, Enum):
    """Time grains available for trend series"""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    WEEKDAY = "weekday"

    @property
    def bucket_fn(self) -> BucketKey:
        return _GRAIN_KEYS[self]


_GRAIN_KEYS: Dict[BucketGrain, BucketKey] = {
    BucketGrain.HOUR: hour_bucket,
    BucketGrain.DAY: day_bucket,
    BucketGrain.WEEK: iso_week_bucket,
    BucketGrain.MONTH: month_bucket,
    BucketGrain.YEAR: year_bucket,
    BucketGrain.WEEKDAY: weekday_bucket,
}


class Metric(str, Enum):
    """Value selected from a bucket when building a series"""
    REVENUE = "revenue"
    CHECKS = "checks"
    AVERAGE_PER_CHECK = "average_per_check"
    QUANTITY = "quantity"

    def of(self, bucket: AggregationBucket) -> float:
        if self is Metric.REVENUE:
            return bucket.revenue
        if self is Metric.CHECKS:
            return bucket.unique_checks
        if self is Metric.AVERAGE_PER_CHECK:
            return bucket.average_per_check
        return bucket.quantity


# =============================================================================
# AGGREGATION
# =============================================================================

def aggregate(records: Records, key: BucketKey) -> pl.DataFrame:
    """
    Revenue, quantity and distinct checks per key.

    Returns the key columns plus revenue, quantity and checks, one row per
    key in first-seen order.
    """
    return (
        to_frame(records)
        .group_by(key.expressions, maintain_order=True)
        .agg([
            pl.col("net_revenue").sum().alias("revenue"),
            pl.col("quantity").sum().alias("quantity"),
            pl.col("bill_number").n_unique().alias("checks"),
        ])
    )


def group_by_bucket(records: Records, key: BucketKey) -> Dict[Hashable, AggregationBucket]:
    """
    Group records under a bucket key.

    Keys keep first-seen order. Bucket revenues sum to the input revenue.
    """
    buckets: Dict[Hashable, AggregationBucket] = {}
    for row in aggregate(records, key).iter_rows(named=True):
        bucket_key = key.key_of(row)
        buckets[bucket_key] = AggregationBucket(
            key=bucket_key,
            revenue=row["revenue"],
            quantity=row["quantity"],
            unique_checks=row["checks"],
        )
    return buckets


def ratio_series(
    buckets: Mapping[Hashable, AggregationBucket],
    metric: Metric,
    sort_keys: bool = True,
) -> List[Tuple[Hashable, float]]:
    """(key, value) points for one metric, ordered by key"""
    keys = sorted(buckets) if sort_keys else list(buckets)
    return [(key, metric.of(buckets[key])) for key in keys]


def bucket_series(records: Records, key: BucketKey, metric: Metric) -> List[Tuple[Hashable, float]]:
    """group_by_bucket followed by ratio_series"""
    return ratio_series(group_by_bucket(records, key), metric)


def bill_totals_frame(records: Records) -> pl.DataFrame:
    """One row per bill: bill_number and its summed net revenue as total"""
    return (
        to_frame(records)
        .group_by("bill_number", maintain_order=True)
        .agg(pl.col("net_revenue").sum().alias("total"))
    )


def bill_totals(records: Records) -> Dict[str, float]:
    """Transaction totals keyed by bill number"""
    totals = bill_totals_frame(records)
    return dict(zip(totals["bill_number"].to_list(), totals["total"].to_list()))


def percentile_by_index(values: Union[pl.Series, Sequence[float]], p: float) -> float:
    """
    Value at index floor(p * n) of the ascending sort, 0 for no values.

    The index is clamped to the last element so p = 1 returns the maximum.
    """
    series = values if isinstance(values, pl.Series) else pl.Series(values, dtype=pl.Float64)
    if series.len() == 0:
        return 0.0
    index = min(int(math.floor(p * series.len())), series.len() - 1)
    return float(series.sort()[max(index, 0)])


def percentile_of_sorted_bill_totals(records: Records, p: float) -> float:
    """Percentile of per-bill totals, robust to outliers compared to min/max"""
    return percentile_by_index(bill_totals_frame(records)["total"], p)


def top_n(mapping: Mapping[Hashable, Any], n: int, by_field: str) -> List[Tuple[Hashable, Any]]:
    """
    The n entries with the largest numeric by_field, descending.

    by_field is read as an attribute or mapping key. Ties keep insertion
    order (sorted is stable).
    """
    def value_of(item: Any) -> float:
        if isinstance(item, Mapping):
            return item[by_field]
        return getattr(item, by_field)

    ranked = sorted(mapping.items(), key=lambda kv: value_of(kv[1]), reverse=True)
    return ranked[:n]


@dataclass
class PeriodTotals:
    """Headline figures for a slice of records"""
    revenue: float = 0.0
    checks: int = 0
    quantity: int = 0

    @property
    def average_per_check(self) -> float:
        return self.revenue / self.checks if self.checks else 0.0


def summarize(records: Records) -> PeriodTotals:
    """Revenue, distinct checks and quantity of a slice"""
    totals = to_frame(records).select([
        pl.col("net_revenue").sum().alias("revenue"),
        pl.col("bill_number").n_unique().alias("checks"),
        pl.col("quantity").sum().alias("quantity"),
    ]).row(0, named=True)
    return PeriodTotals(
        revenue=float(totals["revenue"] or 0.0),
        checks=int(totals["checks"] or 0),
        quantity=int(totals["quantity"] or 0),
    )


def slice_window(records: Records, window: PeriodWindow) -> pl.DataFrame:
    """Rows whose timestamp falls inside the window, bounds included"""
    return to_frame(records).filter(pl.col("timestamp").is_between(window.start, window.end, closed="both"))


def in_hours(records: Records, hours: Iterable[int]) -> pl.DataFrame:
    """Rows sold during any of the given hours of day"""
    return to_frame(records).filter(HOUR.is_in(list(hours)))


def on_weekdays(records: Records, weekdays: Iterable[int], include: bool = True) -> pl.DataFrame:
    """Rows sold on (or, with include=False, off) the given weekdays"""
    selected = WEEKDAY.is_in(list(weekdays))
    return to_frame(records).filter(selected if include else ~selected)


def share(part: float, whole: float) -> float:
    """part as a percentage of whole, 0 when whole is 0"""
    return part / whole * 100 if whole else 0.0
