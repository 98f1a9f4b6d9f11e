"""
Segmentation & Classification

- Product quadrants: revenue x quantity against the slice's own averages
- Customer segments: new / loyal / high spender tags for active customers
- Peak window: busiest hour of day and the fixed span that starts there
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Set, Tuple

import polars as pl
import structlog

from salespulse.analytics.aggregation import (
    Records,
    group_by_bucket,
    hour_bucket,
    item_key,
    percentile_by_index,
    slice_window,
    to_frame,
    weekday_bucket,
)
from salespulse.analytics.formatting import format_hour_range
from salespulse.data.records import PeriodWindow

logger = structlog.get_logger(__name__)


# =============================================================================
# PRODUCT QUADRANTS
# =============================================================================

class Quadrant(str, Enum):
    """Menu-engineering class of a product"""
    STAR = "star"            # high revenue, high quantity
    CASH_COW = "cash_cow"    # high revenue, low quantity
    HORSE = "horse"          # low revenue, high quantity
    DOG = "dog"              # low revenue, low quantity


@dataclass
class ProductStat:
    """Sales of one product inside the analysed slice"""
    name: str
    revenue: float = 0.0
    quantity: int = 0


@dataclass
class QuadrantResult:
    """Products of one slice split into the four quadrants"""
    avg_revenue: float
    avg_quantity: float
    quadrants: Dict[Quadrant, List[ProductStat]]

    def __getitem__(self, quadrant: Quadrant) -> List[ProductStat]:
        return self.quadrants[quadrant]

    def quadrant_of(self, name: str) -> Optional[Quadrant]:
        for quadrant, products in self.quadrants.items():
            if any(p.name == name for p in products):
                return quadrant
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "avg_revenue": self.avg_revenue,
            "avg_quantity": self.avg_quantity,
            **{
                quadrant.value: [
                    {"name": p.name, "revenue": p.revenue, "quantity": p.quantity}
                    for p in products
                ]
                for quadrant, products in self.quadrants.items()
            },
        }


def item_frame(records: Records) -> pl.DataFrame:
    """Revenue and quantity per category group and item, in first-sold order"""
    return (
        to_frame(records)
        .group_by(["category_group", "item_name"], maintain_order=True)
        .agg([
            pl.col("net_revenue").sum().alias("revenue"),
            pl.col("quantity").sum().alias("quantity"),
        ])
    )


def product_stats(records: Records) -> List[ProductStat]:
    """Per-product revenue and quantity, in first-sold order"""
    return [
        ProductStat(name=name, revenue=bucket.revenue, quantity=bucket.quantity)
        for name, bucket in group_by_bucket(records, item_key).items()
    ]


def label_quadrants(items: pl.DataFrame, over: Optional[str] = None) -> pl.DataFrame:
    """
    Add avg_revenue, avg_quantity and quadrant columns to an item frame.

    Averages are taken per `over` group when given, otherwise across the
    whole frame. A value equal to the average counts as high.
    """
    def average(column: str) -> pl.Expr:
        mean = pl.col(column).mean()
        return mean.over(over) if over else mean

    items = items.with_columns([
        average("revenue").alias("avg_revenue"),
        average("quantity").alias("avg_quantity"),
    ])

    high_revenue = pl.col("revenue") >= pl.col("avg_revenue")
    high_quantity = pl.col("quantity") >= pl.col("avg_quantity")

    return items.with_columns(
        pl.when(high_revenue & high_quantity)
        .then(pl.lit(Quadrant.STAR.value))
        .when(high_revenue)
        .then(pl.lit(Quadrant.CASH_COW.value))
        .when(high_quantity)
        .then(pl.lit(Quadrant.HORSE.value))
        .otherwise(pl.lit(Quadrant.DOG.value))
        .alias("quadrant")
    )


def _quadrant_result(labelled: pl.DataFrame) -> QuadrantResult:
    quadrants: Dict[Quadrant, List[ProductStat]] = {q: [] for q in Quadrant}
    if labelled.is_empty():
        return QuadrantResult(avg_revenue=0.0, avg_quantity=0.0, quadrants=quadrants)

    ranked = labelled.sort("revenue", descending=True, maintain_order=True)
    for row in ranked.iter_rows(named=True):
        quadrants[Quadrant(row["quadrant"])].append(
            ProductStat(name=row["item_name"], revenue=row["revenue"], quantity=row["quantity"])
        )

    return QuadrantResult(
        avg_revenue=labelled["avg_revenue"][0],
        avg_quantity=labelled["avg_quantity"][0],
        quadrants=quadrants,
    )


def classify_products(products: List[ProductStat]) -> QuadrantResult:
    """
    Classify products against the average revenue and quantity of this list.

    Each quadrant is sorted by revenue, highest first; the four lists
    partition the input.
    """
    items = pl.DataFrame(
        {
            "item_name": [p.name for p in products],
            "revenue": [p.revenue for p in products],
            "quantity": [p.quantity for p in products],
        },
        schema={"item_name": pl.Utf8, "revenue": pl.Float64, "quantity": pl.Int64},
    )
    return _quadrant_result(label_quadrants(items))


def classify_by_category(records: Records) -> Dict[str, QuadrantResult]:
    """Quadrants per category group, each against its own category's averages"""
    labelled = label_quadrants(item_frame(records), over="category_group")
    if labelled.is_empty():
        return {}
    return {
        group["category_group"][0]: _quadrant_result(group)
        for group in labelled.partition_by("category_group", maintain_order=True)
    }


# =============================================================================
# CUSTOMER SEGMENTS
# =============================================================================

@dataclass
class CustomerProfile:
    """A customer's full purchase history"""
    name: str
    first_seen: datetime
    bills: Set[str] = field(default_factory=set)
    total_spend: float = 0.0


@dataclass
class CustomerSegment:
    """An active customer with in-window figures and segment tags"""
    profile: CustomerProfile
    window_bills: int
    window_spend: float
    is_new: bool = False
    is_loyal: bool = False
    is_high_spender: bool = False

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def average_spend(self) -> float:
        return self.window_spend / self.window_bills if self.window_bills else 0.0


@dataclass
class SegmentSummary:
    """Size and average spend per bill of one segment"""
    count: int = 0
    average_spend: float = 0.0


@dataclass
class CustomerSegmentation:
    """Segmentation of the customers active in a window"""
    active: List[CustomerSegment]
    high_spender_threshold: float
    new: SegmentSummary
    loyal: SegmentSummary
    high_spender: SegmentSummary
    newest_members: List[str]
    top_customers: List[str]


def _named_customers(records: Records) -> pl.DataFrame:
    """Rows carrying a customer name, with each customer's first purchase"""
    return (
        to_frame(records)
        .filter(pl.col("customer_name").is_not_null() & (pl.col("customer_name") != ""))
        .with_columns(pl.col("timestamp").min().over("customer_name").alias("first_seen"))
    )


def build_customer_profiles(records: Records) -> Dict[str, CustomerProfile]:
    """Profiles keyed by customer name; records without a customer are ignored"""
    history = (
        _named_customers(records)
        .group_by("customer_name", maintain_order=True)
        .agg([
            pl.col("first_seen").first(),
            pl.col("bill_number").unique(maintain_order=True).alias("bills"),
            pl.col("net_revenue").sum().alias("total_spend"),
        ])
    )
    return {
        row["customer_name"]: CustomerProfile(
            name=row["customer_name"],
            first_seen=row["first_seen"],
            bills=set(row["bills"]),
            total_spend=row["total_spend"],
        )
        for row in history.iter_rows(named=True)
    }


def _summarize_segment(active: pl.DataFrame, flag: str) -> SegmentSummary:
    totals = active.filter(pl.col(flag)).select([
        pl.len().alias("count"),
        pl.col("window_bills").sum().alias("bills"),
        pl.col("window_spend").sum().alias("spend"),
    ]).row(0, named=True)
    bills = totals["bills"] or 0
    return SegmentSummary(count=totals["count"], average_spend=totals["spend"] / bills if bills else 0.0)


def _ranked_names(active: pl.DataFrame, column: str, limit: int) -> List[str]:
    return (
        active.sort(column, descending=True, maintain_order=True)
        .head(limit)["customer_name"]
        .to_list()
    )


def segment_customers(
    history: Records,
    window: PeriodWindow,
    loyal_min_bills: int = 2,
    high_spender_percentile: float = 0.8,
    newest_limit: int = 10,
    top_limit: int = 5,
) -> CustomerSegmentation:
    """
    Tag customers active in the window.

    Profiles come from the whole history so that "new" means first seen
    inside the window. Tags are not exclusive.

    Args:
        history: Every available record, not just the window
        window: Current analysis window
        loyal_min_bills: Loyal when in-window bills exceed this
        high_spender_percentile: Percentile of in-window spend per bill
            at or above which a customer is a high spender
    """
    frame = to_frame(history)
    profiles = build_customer_profiles(frame)

    active = (
        slice_window(_named_customers(frame), window)
        .group_by("customer_name", maintain_order=True)
        .agg([
            pl.col("first_seen").first(),
            pl.col("bill_number").n_unique().alias("window_bills"),
            pl.col("net_revenue").sum().alias("window_spend"),
        ])
        .with_columns((pl.col("window_spend") / pl.col("window_bills")).alias("average_spend"))
    )

    threshold = percentile_by_index(active["average_spend"], high_spender_percentile)
    active = active.with_columns([
        pl.col("first_seen").is_between(window.start, window.end, closed="both").alias("is_new"),
        (pl.col("window_bills") > loyal_min_bills).alias("is_loyal"),
        (pl.col("average_spend") >= threshold).alias("is_high_spender"),
    ])

    segmentation = CustomerSegmentation(
        active=[
            CustomerSegment(
                profile=profiles[row["customer_name"]],
                window_bills=row["window_bills"],
                window_spend=row["window_spend"],
                is_new=row["is_new"],
                is_loyal=row["is_loyal"],
                is_high_spender=row["is_high_spender"],
            )
            for row in active.iter_rows(named=True)
        ],
        high_spender_threshold=threshold,
        new=_summarize_segment(active, "is_new"),
        loyal=_summarize_segment(active, "is_loyal"),
        high_spender=_summarize_segment(active, "is_high_spender"),
        newest_members=_ranked_names(active, "first_seen", newest_limit),
        top_customers=_ranked_names(active, "window_spend", top_limit),
    )
    logger.debug(
        "Customers segmented",
        active=len(segmentation.active),
        new=segmentation.new.count,
        loyal=segmentation.loyal.count,
        high_spender=segmentation.high_spender.count,
    )
    return segmentation


# =============================================================================
# PEAK DETECTION
# =============================================================================

@dataclass(frozen=True)
class PeakWindow:
    """Fixed-length span starting at the busiest hour"""
    start_hour: int
    end_hour: int
    checks: int

    @property
    def label(self) -> str:
        return format_hour_range(self.start_hour, self.end_hour)

    @property
    def hours(self) -> Tuple[int, ...]:
        """Hours of day covered, wrapping past midnight"""
        span = (self.end_hour - self.start_hour) % 24 or 24
        return tuple((self.start_hour + offset) % 24 for offset in range(span))


def hourly_check_histogram(records: Records) -> Dict[int, int]:
    """Distinct bills per hour of day, all 24 hours present"""
    buckets = group_by_bucket(records, hour_bucket)
    return {hour: buckets[hour].unique_checks if hour in buckets else 0 for hour in range(24)}


def detect_peak_window(histogram: Mapping[int, int], span_hours: int = 2) -> Optional[PeakWindow]:
    """
    Busiest hour and the span_hours window that starts at it.

    This is not a search over all windows: the span simply begins at the
    argmax hour, earliest hour winning ties. None when nothing was sold.
    """
    if not histogram or max(histogram.values()) <= 0:
        return None
    peak_hour = max(sorted(histogram), key=lambda hour: histogram[hour])
    return PeakWindow(
        start_hour=peak_hour,
        end_hour=(peak_hour + span_hours) % 24,
        checks=histogram[peak_hour],
    )


def busiest_weekday(records: Records) -> Optional[int]:
    """Weekday (0 = Monday) with the most distinct bills, None for no records"""
    buckets = group_by_bucket(records, weekday_bucket)
    if not buckets:
        return None
    return max(sorted(buckets), key=lambda day: buckets[day].unique_checks)
