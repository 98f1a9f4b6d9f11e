"""
Display Formatting

Indonesian-locale number, currency and date formatting for report values.
"""

import math
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence, Union

SHORT_MONTHS = [
    "Jan", "Feb", "Mar", "Apr", "Mei", "Jun",
    "Jul", "Agu", "Sep", "Okt", "Nov", "Des",
]

# Monday first, matching datetime.weekday()
DAY_NAMES = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]

NUMBER_SUFFIXES = [
    (1_000_000_000_000_000, "kd"),  # kuadriliun
    (1_000_000_000_000, "t"),       # triliun
    (1_000_000_000, "m"),           # milyar
    (1_000_000, "jt"),              # juta
    (1_000, "rb"),                  # ribu
]


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float, Decimal))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def format_number(value: Any, fraction_digits: int = 0) -> str:
    """
    Format a number with '.' thousand separators and ',' decimals.

    Up to fraction_digits decimals are kept, trailing zeros dropped.

    Example:
        format_number(1234567.891, 2)  # "1.234.567,89"
    """
    if not _is_number(value):
        return "0"

    quantum = Decimal(1).scaleb(-fraction_digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    negative = rounded < 0
    integer_part, _, fraction = f"{abs(rounded):f}".partition(".")
    fraction = fraction.rstrip("0")

    grouped = f"{int(integer_part):,}".replace(",", ".")
    text = f"{grouped},{fraction}" if fraction else grouped
    if negative and text != "0":
        text = "-" + text
    return text


def format_currency(value: Any, prefix: str = "Rp", fraction_digits: int = 0) -> str:
    """
    Format a currency amount.

    Example:
        format_currency(1234567)  # "Rp1.234.567"
    """
    if not _is_number(value):
        return f"{prefix} 0"
    return f"{prefix}{format_number(value, fraction_digits)}"


def format_percent(value: float, fraction_digits: int = 1) -> str:
    """
    Percentage text without the % sign.

    Below 1000 the decimals are fixed ("100.0"). From 1000 up the value is
    grouped like format_number ("14.900").
    """
    if not _is_number(value):
        return "0"
    if abs(round(value, fraction_digits)) >= 1000:
        return format_number(value, fraction_digits)
    return f"{value:.{fraction_digits}f}"


def truncate_to_fixed(value: float, decimals: int) -> float:
    """Drop decimals beyond the given precision without rounding"""
    multiplier = 10 ** decimals
    return math.trunc(value * multiplier) / multiplier


def shorten_number(value: Union[int, float]) -> str:
    """
    Compact a large number with Indonesian suffixes.

    Example:
        shorten_number(1500000)  # "1,5jt"
    """
    if _is_number(value) and value < 0:
        return "-" + shorten_number(-value)
    for divisor, suffix in NUMBER_SUFFIXES:
        if value >= divisor:
            truncated = truncate_to_fixed(value / divisor, 1)
            if truncated % 1 == 0:
                number = str(int(truncated))
            else:
                number = f"{truncated:.1f}".replace(".", ",")
            return number + suffix

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def shorten_currency(value: Union[int, float], prefix: str = "Rp") -> str:
    """Compact currency, e.g. 'Rp1,5jt'"""
    return prefix + shorten_number(value)


def _as_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def shorten_date(
    value: Union[str, date, datetime],
    all_dates: Sequence[Union[str, date, datetime]] = (),
    today: Optional[date] = None,
) -> str:
    """
    Format a chart label date relative to the other labels.

    'D Mon' when every label falls in the current year, otherwise
    'D Mon YYYY'.

    Example:
        shorten_date("2024-06-24", ["2024-06-24", "2023-05-20"])  # "24 Jun 2024"
    """
    day = _as_date(value)
    current_year = (today or date.today()).year
    years = [_as_date(d).year for d in all_dates]

    same_year = bool(years) and all(y == years[0] for y in years) and day.year == years[0]
    month = SHORT_MONTHS[day.month - 1]

    if same_year and day.year == current_year:
        return f"{day.day} {month}"
    return f"{day.day} {month} {day.year}"


def format_hour_range(start_hour: int, end_hour: int) -> str:
    """Label an hour span, e.g. '12:00 - 14:00'"""
    return f"{start_hour:02d}:00 - {end_hour:02d}:00"
