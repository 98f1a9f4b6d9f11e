"""
Unit Tests - Record Normalizer
"""
from datetime import date, datetime, timezone, timedelta

import pytest

from salespulse.exceptions import ValidationError
from salespulse.ingestion.normalizer import (
    ColumnMapping,
    RecordNormalizer,
    normalize,
    parse_float,
    parse_int,
    parse_timestamp,
    record_from_document,
    record_to_document,
)


class TestParsers:
    """Tests for the lenient cell parsers"""

    def test_parse_int_leading_digits(self):
        assert parse_int("12abc") == 12
        assert parse_int(" 7 ") == 7
        assert parse_int("3.9") == 3
        assert parse_int(4.0) == 4

    def test_parse_int_failure(self):
        assert parse_int("abc") is None
        assert parse_int(None) is None
        assert parse_int(float("nan")) is None

    def test_parse_float_leading_number(self):
        assert parse_float("45000.50 IDR") == 45000.5
        assert parse_float("-1200") == -1200.0
        assert parse_float(".5") == 0.5

    def test_parse_float_rejects_non_finite(self):
        assert parse_float(float("inf")) is None
        assert parse_float(float("nan")) is None
        assert parse_float("") is None

    @pytest.mark.parametrize("raw, expected", [
        ("2025-01-10 12:15:00", datetime(2025, 1, 10, 12, 15)),
        ("2025-01-10T12:15:00", datetime(2025, 1, 10, 12, 15)),
        ("10/01/2025 12:15", datetime(2025, 1, 10, 12, 15)),
        ("10-01-2025", datetime(2025, 1, 10)),
        (date(2025, 1, 10), datetime(2025, 1, 10)),
        (45667, datetime(2025, 1, 10)),
        (45667.5, datetime(2025, 1, 10, 12, 0)),
    ])
    def test_parse_timestamp_formats(self, raw, expected):
        assert parse_timestamp(raw) == expected

    def test_parse_timestamp_keeps_wall_clock(self):
        aware = datetime(2025, 1, 10, 12, 15, tzinfo=timezone(timedelta(hours=7)))
        assert parse_timestamp(aware) == datetime(2025, 1, 10, 12, 15)
        assert parse_timestamp("2025-01-10T12:15:00+07:00") == datetime(2025, 1, 10, 12, 15)

    def test_parse_timestamp_failure(self):
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None


class TestRecordNormalizer:
    """Tests for RecordNormalizer"""

    def test_normalize_rows(self, raw_rows):
        records = normalize(raw_rows)

        assert len(records) == 3
        first = records[0]
        assert first.bill_number == "INV-001"
        assert first.timestamp == datetime(2025, 1, 10, 12, 15)
        assert first.branch == "Kemang"
        assert first.quantity == 2
        assert first.unit_price == 45000.0
        assert first.net_revenue == 90000.0
        assert first.customer_name == "Budi"

        assert records[2].timestamp == datetime(2025, 1, 11, 19, 40)
        assert records[2].customer_name is None

    def test_rows_without_bill_number_are_counted(self, raw_rows):
        raw_rows.append({**raw_rows[0], "Bill Number": "  "})
        raw_rows.append({"Menu": "orphan"})

        records, stats = RecordNormalizer().normalize_with_stats(raw_rows)

        assert len(records) == 3
        assert stats.total_rows == 5
        assert stats.rows_skipped == 2
        assert stats.skipped_reasons == {"missing_bill_number": 2}

    def test_no_bill_numbers_raises(self):
        with pytest.raises(ValidationError, match="Bill Number"):
            normalize([{"Menu": "Es Teh"}, {"Bill Number": ""}])

    def test_missing_revenue_column_is_named(self, raw_rows):
        for row in raw_rows:
            del row["Revenue"]

        with pytest.raises(ValidationError) as exc_info:
            normalize(raw_rows)

        assert "Revenue" in str(exc_info.value)
        assert exc_info.value.missing_columns == ["Revenue"]

    def test_every_missing_column_is_named(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize([{"Bill Number": "INV-1", "Menu": "Es Teh"}])

        missing = exc_info.value.missing_columns
        assert "Sales Date In" in missing
        assert "Quantity" in missing
        assert "Menu" not in missing
        assert "Customer Name" not in missing

    def test_invalid_date_names_bill_and_value(self, raw_rows):
        raw_rows[2]["Sales Date In"] = "32/13/2025"

        with pytest.raises(ValidationError) as exc_info:
            normalize(raw_rows)

        assert exc_info.value.bill_number == "INV-002"
        assert exc_info.value.raw_value == "32/13/2025"
        assert "INV-002" in str(exc_info.value)
        assert "32/13/2025" in str(exc_info.value)

    def test_malformed_numbers_default_to_zero(self, raw_rows):
        raw_rows[0]["Quantity"] = "two"
        raw_rows[0]["Revenue"] = "n/a"
        raw_rows[1]["Price"] = "-500"

        records, stats = RecordNormalizer().normalize_with_stats(raw_rows)

        assert records[0].quantity == 0
        assert records[0].net_revenue == 0.0
        assert records[1].unit_price == 0.0
        assert stats.numeric_fields_defaulted == 3

    def test_negative_revenue_is_kept(self, raw_rows):
        raw_rows[2]["Revenue"] = "-43200"

        records = normalize(raw_rows)

        assert records[2].net_revenue == -43200.0

    def test_custom_column_mapping(self):
        columns = ColumnMapping(bill_number="Receipt", net_revenue="Net Sales")
        row = {
            "Receipt": "R-9",
            "Sales Date In": "2025-02-01",
            "Branch": "BSD",
            "Visit Purpose": "Take Away",
            "Menu Category": "Dessert",
            "Menu": "Klepon",
            "Quantity": 3,
            "Price": 6000,
            "Net Sales": 18000,
        }

        records = RecordNormalizer(columns).normalize([row])

        assert records[0].bill_number == "R-9"
        assert records[0].net_revenue == 18000.0


class TestDocumentCodec:
    """Tests for the stored-document codec"""

    def test_document_roundtrip(self, make_record):
        record = make_record(customer_name="Ani")

        doc = record_to_document(record)

        assert doc["timestamp"] == "2025-01-15T12:00:00"
        assert record_from_document(doc) == record

    def test_document_accepts_datetime_timestamp(self, make_record):
        doc = record_to_document(make_record())
        doc["timestamp"] = datetime(2025, 1, 15, 12, 0)

        assert record_from_document(doc).timestamp == datetime(2025, 1, 15, 12, 0)

    def test_document_without_timestamp_raises(self, make_record):
        doc = record_to_document(make_record())
        doc["timestamp"] = None

        with pytest.raises(ValidationError):
            record_from_document(doc)
