"""
Unit Tests - Display Formatting
"""
from datetime import date

import pytest

from salespulse.analytics.formatting import (
    format_currency,
    format_hour_range,
    format_number,
    format_percent,
    shorten_currency,
    shorten_date,
    shorten_number,
    truncate_to_fixed,
)


class TestNumbers:
    """Tests for number and currency formatting"""

    @pytest.mark.parametrize("value, digits, expected", [
        (1234567.891, 2, "1.234.567,89"),
        (1500000, 0, "1.500.000"),
        (1.5, 2, "1,5"),
        (2.0, 2, "2"),
        (0.5, 0, "1"),
        (-1234.4, 0, "-1.234"),
        (-0.4, 0, "0"),
        (999, 0, "999"),
    ])
    def test_format_number(self, value, digits, expected):
        assert format_number(value, digits) == expected

    def test_format_number_non_numeric(self):
        assert format_number("abc") == "0"
        assert format_number(None) == "0"

    def test_format_currency(self):
        assert format_currency(1234567) == "Rp1.234.567"
        assert format_currency(80000.4) == "Rp80.000"
        assert format_currency(5, prefix="IDR ") == "IDR 5"

    def test_format_currency_non_numeric(self):
        assert format_currency(None) == "Rp 0"
        assert format_currency(float("nan")) == "Rp 0"

    def test_format_percent(self):
        assert format_percent(100) == "100.0"
        assert format_percent(33.333, 1) == "33.3"

    def test_format_percent_groups_thousands(self):
        assert format_percent(14900.0) == "14.900"
        assert format_percent(1234.56) == "1.234,6"
        assert format_percent(999.94) == "999.9"

    def test_truncate_to_fixed(self):
        assert truncate_to_fixed(1.99, 1) == 1.9
        assert truncate_to_fixed(2.0, 1) == 2.0


class TestShortening:
    """Tests for compact number display"""

    @pytest.mark.parametrize("value, expected", [
        (1_500_000, "1,5jt"),
        (2_000, "2rb"),
        (1_990, "1,9rb"),
        (1_250_000_000, "1,2m"),
        (3_000_000_000_000, "3t"),
        (2_000_000_000_000_000, "2kd"),
        (999, "999"),
        (12.0, "12"),
    ])
    def test_shorten_number(self, value, expected):
        assert shorten_number(value) == expected

    def test_shorten_currency(self):
        assert shorten_currency(1_500_000) == "Rp1,5jt"

    def test_shorten_negative(self):
        assert shorten_number(-2_500) == "-2,5rb"
        assert shorten_currency(-1_500_000) == "Rp-1,5jt"


class TestDates:
    """Tests for date and label helpers"""

    def test_shorten_date_mixed_years(self):
        assert shorten_date("2024-06-24", ["2024-06-24", "2023-05-20"]) == "24 Jun 2024"

    def test_shorten_date_current_year(self):
        labels = ["2025-08-09", "2025-08-10"]
        assert shorten_date("2025-08-09", labels, today=date(2025, 10, 1)) == "9 Agu"

    def test_shorten_date_past_year(self):
        labels = ["2023-08-09", "2023-08-10"]
        assert shorten_date("2023-08-09", labels, today=date(2025, 10, 1)) == "9 Agu 2023"

    def test_shorten_date_without_labels_includes_year(self):
        assert shorten_date(date(2025, 12, 1), today=date(2025, 12, 2)) == "1 Des 2025"

    def test_format_hour_range(self):
        assert format_hour_range(12, 14) == "12:00 - 14:00"
        assert format_hour_range(23, 1) == "23:00 - 01:00"

