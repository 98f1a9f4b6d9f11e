"""
Analysis Orchestrator

Converts the full record set into one polars frame, slices it into the
current, comparison and last-year windows, and assembles every derived
metric into one immutable ResultsBag for the presentation layer.
"""

import time
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import polars as pl
import structlog

from salespulse.analytics.aggregation import (
    BucketGrain,
    BucketKey,
    Metric,
    Records,
    aggregate,
    bill_totals_frame,
    branch_key,
    bucket_series,
    channel_key,
    day_bucket,
    group_by_bucket,
    in_hours,
    item_key,
    on_weekdays,
    percentile_by_index,
    share,
    slice_window,
    summarize,
    to_frame,
    top_n,
    weekday_hour_bucket,
)
from salespulse.analytics.comparison import ComparisonResult, compare
from salespulse.analytics.formatting import (
    DAY_NAMES,
    format_currency,
    format_number,
    format_percent,
    shorten_currency,
    shorten_date,
)
from salespulse.analytics.segmentation import (
    busiest_weekday,
    classify_by_category,
    detect_peak_window,
    hourly_check_histogram,
    item_frame,
    segment_customers,
)
from salespulse.config import get_settings
from salespulse.config.settings import AnalyticsSettings
from salespulse.data.records import PeriodWindow

logger = structlog.get_logger(__name__)

Point = Tuple[Hashable, float]
Series = Tuple[Point, ...]


def _plain(value: Any) -> Any:
    """Convert a bag value into JSON-friendly data"""
    if isinstance(value, ComparisonResult):
        return value.to_dict()
    if isinstance(value, DimensionStat):
        return value.to_dict()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class ResultsBag:
    """
    Read-only analysis output.

    values holds scalar and display-ready entries keyed by name, series
    holds chart points. Neither can be mutated after construction.
    """

    def __init__(self, values: Mapping[str, Any], series: Mapping[str, Series]):
        self._values = MappingProxyType(dict(values))
        self._series = MappingProxyType({name: tuple(points) for name, points in series.items()})

    @property
    def values(self) -> Mapping[str, Any]:
        return self._values

    @property
    def series(self) -> Mapping[str, Series]:
        return self._series

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": {key: _plain(value) for key, value in self._values.items()},
            "series": {
                name: [[_plain(k), v] for k, v in points]
                for name, points in self._series.items()
            },
        }


# =============================================================================
# DIMENSION BREAKDOWN
# =============================================================================

@dataclass(frozen=True)
class DimensionStat:
    """One channel or outlet compared against the previous window"""
    name: str
    revenue: float
    checks: int
    average_per_check: float
    previous_revenue: float
    comparison: ComparisonResult
    revenue_short: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "revenue": self.revenue,
            "revenue_short": self.revenue_short,
            "checks": self.checks,
            "average_per_check": self.average_per_check,
            "previous_revenue": self.previous_revenue,
            "comparison": self.comparison.to_dict(),
        }


def dimension_breakdown(
    current: Records,
    previous: Records,
    key: BucketKey,
    flat_on_equal: bool = False,
    currency_prefix: str = "Rp",
) -> List[DimensionStat]:
    """Per-key revenue, checks and APC with growth, highest revenue first"""
    current_buckets = group_by_bucket(current, key)
    previous_buckets = group_by_bucket(previous, key)

    stats = []
    for name, bucket in current_buckets.items():
        previous_bucket = previous_buckets.get(name)
        previous_revenue = previous_bucket.revenue if previous_bucket else 0.0
        stats.append(DimensionStat(
            name=str(name),
            revenue=bucket.revenue,
            checks=bucket.unique_checks,
            average_per_check=bucket.average_per_check,
            previous_revenue=previous_revenue,
            comparison=compare(bucket.revenue, previous_revenue, flat_on_equal),
            revenue_short=shorten_currency(bucket.revenue, currency_prefix),
        ))

    stats.sort(key=lambda s: s.revenue, reverse=True)
    return stats


def top_by_growth(stats: Sequence[DimensionStat], n: int) -> List[DimensionStat]:
    """Entries with an applicable comparison, fastest growing first"""
    growing = [s for s in stats if s.comparison.is_applicable]
    return sorted(growing, key=lambda s: s.comparison.growth, reverse=True)[:n]


# =============================================================================
# SECTIONS
# =============================================================================

def _flatten_comparison(values: Dict[str, Any], prefix: str, comparison: ComparisonResult) -> None:
    values[f"{prefix}_comparison"] = comparison
    values[f"{prefix}_arrow"] = comparison.arrow
    values[f"{prefix}_percent"] = comparison.percent
    values[f"{prefix}_sign"] = comparison.sign
    values[f"{prefix}_difference"] = comparison.absolute_difference


def _overview(current: pl.DataFrame, previous: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    now, before = summarize(current), summarize(previous)
    prefix = config.currency_prefix

    values: Dict[str, Any] = {
        "current_revenue": now.revenue,
        "current_revenue_formatted": format_currency(now.revenue, prefix),
        "current_checks": now.checks,
        "current_checks_formatted": format_number(now.checks),
        "current_apc": now.average_per_check,
        "current_apc_formatted": format_currency(now.average_per_check, prefix),
        "current_quantity": now.quantity,
        "previous_revenue": before.revenue,
        "previous_checks": before.checks,
        "previous_apc": before.average_per_check,
    }
    _flatten_comparison(values, "revenue", compare(now.revenue, before.revenue, config.flat_on_equal))
    _flatten_comparison(values, "checks", compare(now.checks, before.checks, config.flat_on_equal))
    _flatten_comparison(
        values, "apc", compare(now.average_per_check, before.average_per_check, config.flat_on_equal)
    )

    leaders = top_n(group_by_bucket(current, branch_key), 1, "revenue")
    if leaders:
        name, bucket = leaders[0]
        values["top_outlet_name"] = name
        values["top_outlet_share"] = format_percent(share(bucket.revenue, now.revenue), 1)
    else:
        values["top_outlet_name"] = None
        values["top_outlet_share"] = format_percent(0.0, 1)
    return values


def _spend_range(frame: pl.DataFrame, config: AnalyticsSettings) -> Tuple[str, str]:
    totals = bill_totals_frame(frame)["total"]
    prefix = config.currency_prefix
    return (
        format_currency(percentile_by_index(totals, config.spend_range_lower), prefix),
        format_currency(percentile_by_index(totals, config.spend_range_upper), prefix),
    )


def _customer_spending(current: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    prefix = config.currency_prefix
    lower, upper = _spend_range(current, config)
    highest = bill_totals_frame(current)["total"].max()

    peak = detect_peak_window(hourly_check_histogram(current), config.peak_window_hours)
    weekday = busiest_weekday(current)

    values: Dict[str, Any] = {
        "spend_range_lower": lower,
        "spend_range_upper": upper,
        "highest_single_transaction": format_currency(highest if highest is not None else 0, prefix),
        "busiest_time_range": peak.label if peak else None,
        "busiest_hour_checks": peak.checks if peak else 0,
        "busiest_day": DAY_NAMES[weekday] if weekday is not None else None,
    }

    peak_frame = in_hours(current, peak.hours) if peak else current.clear()
    popular = top_n(group_by_bucket(peak_frame, item_key), config.peak_popular_items, "quantity")
    values["peak_popular_items"] = tuple(name for name, _ in popular)
    values["peak_check_range_lower"], values["peak_check_range_upper"] = _spend_range(peak_frame, config)
    return values


def _traffic_dates(current: pl.DataFrame) -> Dict[str, Any]:
    days = aggregate(current, day_bucket).sort("day")
    labels = days["day"].to_list()

    def label(day: Optional[date]) -> Optional[str]:
        if day is None:
            return None
        # labels are relative to the report's own year, not the wall clock
        return shorten_date(day, labels, today=labels[-1])

    if days.is_empty():
        return {
            "daily_labels": (),
            "top_revenue_dates": (),
            "peak_traffic_date": None,
            "peak_traffic_checks": 0,
            "lowest_traffic_date": None,
            "lowest_traffic_checks": 0,
        }

    # sorts are stable over the chronological frame, so ties go to the earliest day
    by_revenue = days.sort("revenue", descending=True, maintain_order=True)
    busiest = days.sort("checks", descending=True, maintain_order=True).row(0, named=True)
    quietest = days.sort("checks", maintain_order=True).row(0, named=True)

    return {
        "daily_labels": tuple(label(day) for day in labels),
        "top_revenue_dates": tuple(label(day) for day in by_revenue.head(2)["day"].to_list()),
        "peak_traffic_date": label(busiest["day"]),
        "peak_traffic_checks": busiest["checks"],
        "lowest_traffic_date": label(quietest["day"]),
        "lowest_traffic_checks": quietest["checks"],
    }


def _weekend_split(current: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    weekend = summarize(on_weekdays(current, config.weekend_days))
    weekday = summarize(on_weekdays(current, config.weekend_days, include=False))
    total_revenue = weekend.revenue + weekday.revenue
    prefix = config.currency_prefix

    uplift = compare(weekend.average_per_check, weekday.average_per_check, config.flat_on_equal)
    return {
        "weekend_revenue": weekend.revenue,
        "weekday_revenue": weekday.revenue,
        "weekend_revenue_share": format_percent(share(weekend.revenue, total_revenue), 1),
        "weekend_apc": format_currency(weekend.average_per_check, prefix),
        "weekday_apc": format_currency(weekday.average_per_check, prefix),
        "weekend_apc_uplift": uplift,
    }


_DIMENSIONS = (("channel", channel_key), ("outlet", branch_key))


def _dimensions(current: pl.DataFrame, previous: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, key in _DIMENSIONS:
        stats = dimension_breakdown(current, previous, key, config.flat_on_equal, config.currency_prefix)
        values[f"{name}_breakdown"] = tuple(stats)
        values[f"top_{name}s_by_revenue"] = tuple(stats[:2])
        values[f"top_{name}s_by_growth"] = tuple(top_by_growth(stats, 2))
    return values


def _monthly_increase(frame: pl.DataFrame, window: PeriodWindow, config: AnalyticsSettings) -> Dict[str, Any]:
    """Channels and outlets that grew most from the previous calendar month"""
    month = PeriodWindow.month_of(window.end)
    previous_month = month.previous_month()
    this_month = slice_window(frame, month)
    last_month = slice_window(frame, previous_month)

    values: Dict[str, Any] = {
        "monthly_increase_month": month.start.date(),
        "monthly_increase_previous_month": previous_month.start.date(),
    }
    for name, key in _DIMENSIONS:
        stats = dimension_breakdown(this_month, last_month, key, config.flat_on_equal, config.currency_prefix)
        rising = [s for s in top_by_growth(stats, len(stats)) if s.comparison.growth > 0]
        values[f"top_{name}s_by_monthly_increase"] = tuple(rising[:2])
    return values


def _products(current: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    prefix = config.currency_prefix
    items = item_frame(current).with_columns(
        pl.col("revenue").sum().over("category_group").alias("category_revenue")
    )

    top_items: Dict[str, Tuple[Dict[str, Any], ...]] = {}
    top_contributors: Dict[str, Optional[str]] = {}
    groups = [] if items.is_empty() else items.partition_by("category_group", maintain_order=True)
    for group in groups:
        category = group["category_group"][0]
        by_quantity = group.sort("quantity", descending=True, maintain_order=True).head(config.top_n)
        top_items[category] = tuple(
            {
                "name": row["item_name"],
                "quantity": row["quantity"],
                "revenue": row["revenue"],
                "revenue_formatted": format_currency(row["revenue"], prefix),
                "revenue_short": shorten_currency(row["revenue"], prefix),
                "revenue_share": format_percent(share(row["revenue"], row["category_revenue"]), 1),
            }
            for row in by_quantity.iter_rows(named=True)
        )
        top_contributors[category] = group.sort("revenue", descending=True, maintain_order=True)["item_name"][0]

    quadrants = {
        category: result.to_dict()
        for category, result in classify_by_category(current).items()
    }
    return {
        "top_items_by_category": MappingProxyType(top_items),
        "top_revenue_item_by_category": MappingProxyType(top_contributors),
        "quadrants_by_category": MappingProxyType(quadrants),
    }


def _customers(history: pl.DataFrame, window: PeriodWindow, config: AnalyticsSettings) -> Dict[str, Any]:
    segmentation = segment_customers(
        history,
        window,
        loyal_min_bills=config.loyal_min_bills,
        high_spender_percentile=config.high_spender_percentile,
        newest_limit=config.newest_members,
        top_limit=config.top_n,
    )
    prefix = config.currency_prefix
    values: Dict[str, Any] = {
        "active_customers": len(segmentation.active),
        "high_spender_threshold": format_currency(segmentation.high_spender_threshold, prefix),
        "newest_members": tuple(segmentation.newest_members),
        "top_customers": tuple(segmentation.top_customers),
    }
    for name in ("new", "loyal", "high_spender"):
        summary = getattr(segmentation, name)
        values[f"{name}_customers"] = summary.count
        values[f"{name}_customers_average_spend"] = format_currency(summary.average_spend, prefix)
    return values


def _year_over_year(current: pl.DataFrame, last_year: pl.DataFrame, config: AnalyticsSettings) -> Dict[str, Any]:
    now, before = summarize(current), summarize(last_year)
    return {
        "last_year_revenue": before.revenue,
        "last_year_checks": before.checks,
        "last_year_apc": before.average_per_check,
        "yoy_revenue_comparison": compare(now.revenue, before.revenue, config.flat_on_equal),
        "yoy_checks_comparison": compare(now.checks, before.checks, config.flat_on_equal),
        "yoy_apc_comparison": compare(now.average_per_check, before.average_per_check, config.flat_on_equal),
    }


def _series(current: pl.DataFrame, last_year: pl.DataFrame) -> Dict[str, List[Point]]:
    day, week, month, hour = (
        BucketGrain.DAY.bucket_fn,
        BucketGrain.WEEK.bucket_fn,
        BucketGrain.MONTH.bucket_fn,
        BucketGrain.HOUR.bucket_fn,
    )
    return {
        "daily_revenue": bucket_series(current, day, Metric.REVENUE),
        "daily_checks": bucket_series(current, day, Metric.CHECKS),
        "daily_apc": bucket_series(current, day, Metric.AVERAGE_PER_CHECK),
        "weekly_revenue": bucket_series(current, week, Metric.REVENUE),
        "monthly_revenue": bucket_series(current, month, Metric.REVENUE),
        "monthly_checks": bucket_series(current, month, Metric.CHECKS),
        "hourly_checks": bucket_series(current, hour, Metric.CHECKS),
        "hourly_revenue": bucket_series(current, hour, Metric.REVENUE),
        "weekday_hour_revenue": bucket_series(current, weekday_hour_bucket, Metric.REVENUE),
        "channel_revenue": bucket_series(current, channel_key, Metric.REVENUE),
        "outlet_revenue": bucket_series(current, branch_key, Metric.REVENUE),
        "last_year_monthly_revenue": bucket_series(last_year, month, Metric.REVENUE),
    }


# =============================================================================
# ENTRY POINT
# =============================================================================

def analyze(
    records: Records,
    current_window: PeriodWindow,
    comparison_window: Optional[PeriodWindow] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> ResultsBag:
    """
    Compute the full report for a window against a comparison window.

    Args:
        records: The owner's full record set, as SalesRecords or a frame
            from to_frame (customer history, the month-over-month figures
            and the year-over-year window are drawn from it)
        current_window: Window being reported on
        comparison_window: Defaults to the window immediately before
        settings: Analytics thresholds, defaults to application settings

    Returns:
        ResultsBag with values and chart series
    """
    started = time.perf_counter()
    config = settings or get_settings().analytics
    comparison_window = comparison_window or current_window.previous_period()
    last_year_window = current_window.shift_years(-1)

    frame = to_frame(records)
    current = slice_window(frame, current_window)
    previous = slice_window(frame, comparison_window)
    last_year = slice_window(frame, last_year_window)

    values: Dict[str, Any] = {
        "current_window_start": current_window.start.date(),
        "current_window_end": current_window.end.date(),
        "comparison_window_start": comparison_window.start.date(),
        "comparison_window_end": comparison_window.end.date(),
    }
    values.update(_overview(current, previous, config))
    values.update(_customer_spending(current, config))
    values.update(_traffic_dates(current))
    values.update(_weekend_split(current, config))
    values.update(_dimensions(current, previous, config))
    values.update(_monthly_increase(frame, current_window, config))
    values.update(_products(current, config))
    values.update(_customers(frame, current_window, config))
    values.update(_year_over_year(current, last_year, config))

    bag = ResultsBag(values, _series(current, last_year))

    logger.info(
        "Analysis completed",
        records=frame.height,
        current_records=current.height,
        comparison_records=previous.height,
        last_year_records=last_year.height,
        duration_seconds=round(time.perf_counter() - started, 3),
    )
    return bag
