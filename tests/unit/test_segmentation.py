"""
Unit Tests - Segmentation & Classification
"""
from datetime import date, datetime

import pytest

from salespulse.analytics.segmentation import (
    ProductStat,
    Quadrant,
    build_customer_profiles,
    busiest_weekday,
    classify_by_category,
    classify_products,
    detect_peak_window,
    hourly_check_histogram,
    product_stats,
    segment_customers,
)
from salespulse.data.records import PeriodWindow

CURRENT = PeriodWindow(date(2025, 1, 8), date(2025, 1, 14))


class TestQuadrants:
    """Tests for product quadrant classification"""

    def test_four_quadrants(self):
        products = [
            ProductStat("Star", revenue=100.0, quantity=10),
            ProductStat("Cow", revenue=100.0, quantity=1),
            ProductStat("Horse", revenue=10.0, quantity=10),
            ProductStat("Dog", revenue=10.0, quantity=1),
        ]

        result = classify_products(products)

        assert result.avg_revenue == pytest.approx(55.0)
        assert result.avg_quantity == pytest.approx(5.5)
        assert [p.name for p in result[Quadrant.STAR]] == ["Star"]
        assert [p.name for p in result[Quadrant.CASH_COW]] == ["Cow"]
        assert [p.name for p in result[Quadrant.HORSE]] == ["Horse"]
        assert [p.name for p in result[Quadrant.DOG]] == ["Dog"]

    def test_identical_products_partition(self):
        products = [ProductStat(f"Item {i}", revenue=50.0, quantity=5) for i in range(4)]

        result = classify_products(products)

        placed = [p.name for quadrant in Quadrant for p in result[quadrant]]
        assert sorted(placed) == sorted(p.name for p in products)
        assert len(result[Quadrant.STAR]) == 4

    def test_quadrants_partition_and_sort(self):
        products = [
            ProductStat(f"P{i}", revenue=float(r), quantity=q)
            for i, (r, q) in enumerate([(5, 9), (80, 2), (40, 7), (90, 8), (20, 1), (60, 3)])
        ]

        result = classify_products(products)

        placed = [p.name for quadrant in Quadrant for p in result[quadrant]]
        assert len(placed) == len(set(placed)) == len(products)
        for quadrant in Quadrant:
            revenues = [p.revenue for p in result[quadrant]]
            assert revenues == sorted(revenues, reverse=True)

    def test_empty_slice(self):
        result = classify_products([])
        assert all(result[q] == [] for q in Quadrant)

    def test_by_category_uses_own_averages(self, sample_records):
        results = classify_by_category(sample_records)

        assert set(results) == {"Food", "Beverage"}
        # a lone product is always at its category's average
        assert results["Beverage"].quadrant_of("Es Teh") == Quadrant.STAR
        assert results["Food"].quadrant_of("Soto Betawi") == Quadrant.DOG

    def test_by_category_empty(self):
        assert classify_by_category([]) == {}

    def test_product_stats_feed_classification(self, sample_records):
        products = product_stats(sample_records)

        assert [p.name for p in products] == ["Nasi Goreng", "Es Teh", "Sate Ayam", "Soto Betawi"]
        assert products[2].quantity == 5
        assert classify_products(products).quadrant_of("Sate Ayam") == Quadrant.STAR


class TestCustomerSegmentation:
    """Tests for customer segmentation"""

    def test_profiles_use_full_history(self, sample_records):
        profiles = build_customer_profiles(sample_records)

        assert set(profiles) == {"Ani", "Budi", "Citra"}
        assert profiles["Ani"].first_seen == datetime(2025, 1, 2, 12, 0)
        assert profiles["Ani"].bills == {"P-1", "C-1"}
        assert profiles["Ani"].total_spend == 180000.0

    def test_segment_tags(self, sample_records):
        result = segment_customers(sample_records, CURRENT)
        by_name = {c.name: c for c in result.active}

        assert set(by_name) == {"Ani", "Budi", "Citra"}
        assert not by_name["Ani"].is_new
        assert by_name["Budi"].is_new and by_name["Citra"].is_new
        assert not any(c.is_loyal for c in result.active)
        assert result.high_spender_threshold == 120000.0
        assert [c.name for c in result.active if c.is_high_spender] == ["Citra"]

    def test_loyal_threshold(self, sample_records):
        result = segment_customers(sample_records, CURRENT, loyal_min_bills=1)

        assert [c.name for c in result.active if c.is_loyal] == ["Budi"]
        assert result.loyal.count == 1
        assert result.loyal.average_spend == pytest.approx(100000.0)

    def test_summaries_and_rankings(self, sample_records):
        result = segment_customers(sample_records, CURRENT)

        assert result.new.count == 2
        assert result.new.average_spend == pytest.approx(320000.0 / 3)
        assert result.newest_members == ["Citra", "Budi", "Ani"]
        assert result.top_customers == ["Budi", "Citra", "Ani"]

    def test_anonymous_records_are_ignored(self, make_record):
        records = [make_record("X-1", datetime(2025, 1, 9)), make_record("X-2", datetime(2025, 1, 10))]

        result = segment_customers(records, CURRENT)

        assert result.active == []
        assert result.high_spender_threshold == 0.0
        assert result.new.count == 0


class TestPeakDetection:
    """Tests for peak window and busiest day"""

    def test_histogram_counts_distinct_bills(self, sample_records):
        histogram = hourly_check_histogram(sample_records)

        assert len(histogram) == 24
        assert histogram[12] == 3
        assert histogram[19] == 2
        assert histogram[3] == 0

    def test_peak_window(self, sample_records):
        peak = detect_peak_window(hourly_check_histogram(sample_records))

        assert peak.start_hour == 12
        assert peak.end_hour == 14
        assert peak.checks == 3
        assert peak.label == "12:00 - 14:00"

    def test_peak_tie_takes_earliest_hour(self):
        histogram = {hour: 0 for hour in range(24)}
        histogram[15] = 4
        histogram[10] = 4

        assert detect_peak_window(histogram).start_hour == 10

    def test_peak_window_wraps_midnight(self):
        peak = detect_peak_window({23: 5, 1: 2}, span_hours=2)

        assert peak.end_hour == 1
        assert peak.label == "23:00 - 01:00"
        assert peak.hours == (23, 0)

    def test_peak_hours(self, sample_records):
        peak = detect_peak_window(hourly_check_histogram(sample_records), span_hours=3)

        assert peak.hours == (12, 13, 14)

    def test_no_sales_has_no_peak(self):
        assert detect_peak_window({}) is None
        assert detect_peak_window({hour: 0 for hour in range(24)}) is None

    def test_busiest_weekday(self, sample_records):
        # two Saturday checks: P-2 and C-2
        assert busiest_weekday(sample_records) == 5
        assert busiest_weekday([]) is None
