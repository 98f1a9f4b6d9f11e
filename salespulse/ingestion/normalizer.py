"""
Record Normalizer

Turns spreadsheet-shaped upload rows into canonical SalesRecord objects.
Handles:
- Required column validation against the first valid row
- Date parsing across the formats POS exports use
- Lenient numeric coercion (malformed numbers become 0, the row is kept)
- The stored-document codec shared by the remote store and snapshot cache
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from salespulse.data.records import SalesRecord
from salespulse.exceptions import ValidationError

logger = structlog.get_logger(__name__)


DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
]

# Day zero of spreadsheet serial dates (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = datetime(1899, 12, 30)

_INT_PREFIX = re.compile(r"^\s*[-+]?\d+")
_FLOAT_PREFIX = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


@dataclass(frozen=True)
class ColumnMapping:
    """Upload column labels for each SalesRecord field"""
    bill_number: str = "Bill Number"
    timestamp: str = "Sales Date In"
    branch: str = "Branch"
    channel: str = "Visit Purpose"
    category_group: str = "Menu Category"
    item_name: str = "Menu"
    quantity: str = "Quantity"
    unit_price: str = "Price"
    net_revenue: str = "Revenue"
    customer_name: str = "Customer Name"

    @property
    def required(self) -> List[str]:
        return [
            self.bill_number,
            self.timestamp,
            self.branch,
            self.channel,
            self.category_group,
            self.item_name,
            self.quantity,
            self.unit_price,
            self.net_revenue,
        ]


@dataclass
class NormalizationStats:
    """Statistics from a normalization run"""
    total_rows: int = 0
    records_created: int = 0
    rows_skipped: int = 0
    numeric_fields_defaulted: int = 0
    skipped_reasons: Dict[str, int] = field(default_factory=dict)


def parse_int(value: Any) -> Optional[int]:
    """Integer parse with leading-digits semantics; None when nothing parses"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _INT_PREFIX.match(str(value))
    return int(match.group(0)) if match else None


def parse_float(value: Any) -> Optional[float]:
    """Float parse with leading-number semantics; None when nothing parses"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _FLOAT_PREFIX.match(str(value))
        if not match:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a POS date cell into a naive datetime; None when it cannot be read"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value <= 0:
            return None
        return EXCEL_EPOCH + timedelta(days=float(value))

    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _is_missing(row: Mapping[str, Any], column: str) -> bool:
    return column not in row or row[column] is None or _text(row[column]) == ""


class RecordNormalizer:
    """
    Converts raw upload rows into SalesRecord objects.

    Example:
        normalizer = RecordNormalizer()
        records, stats = normalizer.normalize_with_stats(rows)
    """

    def __init__(self, columns: Optional[ColumnMapping] = None):
        self.columns = columns or ColumnMapping()

    def _check_required_columns(self, row: Mapping[str, Any]) -> None:
        missing = [column for column in self.columns.required if _is_missing(row, column)]
        if missing:
            raise ValidationError(
                f"Missing required columns: {', '.join(missing)}",
                missing_columns=missing,
                bill_number=_text(row.get(self.columns.bill_number)) or None,
            )

    def _number(
        self,
        row: Mapping[str, Any],
        column: str,
        parser,
        stats: NormalizationStats,
        minimum: Optional[float] = None,
    ):
        value = parser(row.get(column))
        if value is None or (minimum is not None and value < minimum):
            stats.numeric_fields_defaulted += 1
            return parser(0)
        return value

    def _build_record(self, row: Mapping[str, Any], stats: NormalizationStats) -> SalesRecord:
        cols = self.columns
        bill_number = _text(row.get(cols.bill_number))
        raw_date = row.get(cols.timestamp)
        timestamp = parse_timestamp(raw_date)
        if timestamp is None:
            raise ValidationError(
                f"Invalid date '{raw_date}' for bill {bill_number}",
                bill_number=bill_number,
                raw_value=_text(raw_date),
            )

        customer = _text(row.get(cols.customer_name)) or None

        return SalesRecord(
            bill_number=bill_number,
            timestamp=timestamp,
            branch=_text(row.get(cols.branch)),
            channel=_text(row.get(cols.channel)),
            category_group=_text(row.get(cols.category_group)),
            item_name=_text(row.get(cols.item_name)),
            quantity=self._number(row, cols.quantity, parse_int, stats, minimum=0),
            unit_price=self._number(row, cols.unit_price, parse_float, stats, minimum=0),
            net_revenue=self._number(row, cols.net_revenue, parse_float, stats),
            customer_name=customer,
        )

    def normalize_with_stats(
        self,
        raw_rows: Iterable[Mapping[str, Any]],
    ) -> Tuple[List[SalesRecord], NormalizationStats]:
        """
        Normalize rows and report what was skipped or defaulted.

        Raises:
            ValidationError: no row carries a bill number, the first valid row
                lacks a required column, or a row's date cannot be parsed
        """
        rows = list(raw_rows)
        stats = NormalizationStats(total_rows=len(rows))

        valid_rows = [row for row in rows if _text(row.get(self.columns.bill_number))]
        stats.rows_skipped = len(rows) - len(valid_rows)
        if stats.rows_skipped:
            stats.skipped_reasons["missing_bill_number"] = stats.rows_skipped

        if not valid_rows:
            raise ValidationError(
                f"No rows with a '{self.columns.bill_number}' value found in {len(rows)} rows"
            )

        self._check_required_columns(valid_rows[0])

        records = [self._build_record(row, stats) for row in valid_rows]
        stats.records_created = len(records)

        if stats.rows_skipped or stats.numeric_fields_defaulted:
            logger.warning(
                "Rows normalized with corrections",
                total_rows=stats.total_rows,
                rows_skipped=stats.rows_skipped,
                numeric_fields_defaulted=stats.numeric_fields_defaulted,
            )
        else:
            logger.debug("Rows normalized", records=stats.records_created)

        return records, stats

    def normalize(self, raw_rows: Iterable[Mapping[str, Any]]) -> List[SalesRecord]:
        """Normalize rows into SalesRecord objects"""
        records, _ = self.normalize_with_stats(raw_rows)
        return records


def normalize(raw_rows: Iterable[Mapping[str, Any]]) -> List[SalesRecord]:
    """
    Convenience function to normalize upload rows with the default columns.

    Args:
        raw_rows: Spreadsheet-shaped rows keyed by column label

    Returns:
        List of SalesRecord
    """
    return RecordNormalizer().normalize(raw_rows)


# =============================================================================
# STORED DOCUMENT CODEC
# =============================================================================

def record_to_document(record: SalesRecord) -> Dict[str, Any]:
    """Serialize a record to the JSON-friendly document shape"""
    return {
        "bill_number": record.bill_number,
        "timestamp": record.timestamp.isoformat(),
        "branch": record.branch,
        "channel": record.channel,
        "category_group": record.category_group,
        "item_name": record.item_name,
        "quantity": record.quantity,
        "unit_price": record.unit_price,
        "net_revenue": record.net_revenue,
        "customer_name": record.customer_name,
    }


def record_from_document(doc: Mapping[str, Any]) -> SalesRecord:
    """
    Decode a stored document back into a SalesRecord.

    Raises:
        ValidationError: document lacks a bill number or a readable timestamp
    """
    bill_number = _text(doc.get("bill_number"))
    if not bill_number:
        raise ValidationError("Stored document has no bill_number")
    timestamp = parse_timestamp(doc.get("timestamp"))
    if timestamp is None:
        raise ValidationError(
            f"Invalid date '{doc.get('timestamp')}' for bill {bill_number}",
            bill_number=bill_number,
            raw_value=_text(doc.get("timestamp")),
        )
    return SalesRecord(
        bill_number=bill_number,
        timestamp=timestamp,
        branch=_text(doc.get("branch")),
        channel=_text(doc.get("channel")),
        category_group=_text(doc.get("category_group")),
        item_name=_text(doc.get("item_name")),
        quantity=parse_int(doc.get("quantity")) or 0,
        unit_price=parse_float(doc.get("unit_price")) or 0.0,
        net_revenue=parse_float(doc.get("net_revenue")) or 0.0,
        customer_name=_text(doc.get("customer_name")) or None,
    )
