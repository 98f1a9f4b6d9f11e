"""
Analytics module - aggregation, comparison, segmentation and reporting
"""

from salespulse.analytics.aggregation import (
    AggregationBucket,
    BucketGrain,
    BucketKey,
    Metric,
    PeriodTotals,
    aggregate,
    bill_totals,
    group_by_bucket,
    percentile_of_sorted_bill_totals,
    ratio_series,
    slice_window,
    summarize,
    to_frame,
    top_n,
)
from salespulse.analytics.comparison import ComparisonResult, Direction, compare
from salespulse.analytics.orchestrator import ResultsBag, analyze, dimension_breakdown
from salespulse.analytics.segmentation import (
    PeakWindow,
    ProductStat,
    Quadrant,
    classify_by_category,
    classify_products,
    detect_peak_window,
    product_stats,
    segment_customers,
)

__all__ = [
    "AggregationBucket",
    "BucketGrain",
    "BucketKey",
    "Metric",
    "PeriodTotals",
    "aggregate",
    "bill_totals",
    "group_by_bucket",
    "percentile_of_sorted_bill_totals",
    "ratio_series",
    "slice_window",
    "summarize",
    "to_frame",
    "top_n",
    "ComparisonResult",
    "Direction",
    "compare",
    "ResultsBag",
    "analyze",
    "dimension_breakdown",
    "PeakWindow",
    "ProductStat",
    "Quadrant",
    "classify_by_category",
    "classify_products",
    "detect_peak_window",
    "product_stats",
    "segment_customers",
]
