"""
Period Comparator

Period-over-period growth between two scalar metrics.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from salespulse.analytics.formatting import format_number, format_percent

NOT_AVAILABLE = "N/A"


class Direction(str, Enum):
    """Direction of change from the previous to the current value"""
    UP = "up"
    DOWN = "down"
    FLAT = "flat"
    NOT_APPLICABLE = "not_applicable"


_ARROWS = {Direction.UP: "▲", Direction.DOWN: "▼"}
_SIGNS = {Direction.UP: "+", Direction.DOWN: "-"}


@dataclass(frozen=True)
class ComparisonResult:
    """
    Display-ready comparison.

    For NOT_APPLICABLE the text fields hold "N/A" and growth is None;
    callers must not do arithmetic on them.
    """
    direction: Direction
    percent: str
    sign: str
    absolute_difference: str
    growth: Optional[float] = None

    @property
    def arrow(self) -> str:
        return _ARROWS.get(self.direction, "")

    @property
    def is_applicable(self) -> bool:
        return self.direction is not Direction.NOT_APPLICABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "arrow": self.arrow,
            "percent": self.percent,
            "sign": self.sign,
            "absolute_difference": self.absolute_difference,
            "growth": self.growth,
        }


NOT_APPLICABLE = ComparisonResult(
    direction=Direction.NOT_APPLICABLE,
    percent=NOT_AVAILABLE,
    sign="",
    absolute_difference=NOT_AVAILABLE,
)


def _finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float, Decimal))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def compare(current: Any, previous: Any, flat_on_equal: bool = False) -> ComparisonResult:
    """
    Compare the current value against the previous period.

    Equal values are reported as DOWN unless flat_on_equal is set.

    Example:
        compare(100, 50)  # UP, percent "100.0", difference "50"
        compare(7, 0)     # NOT_APPLICABLE
    """
    if not _finite_number(current) or not _finite_number(previous) or previous == 0:
        return NOT_APPLICABLE

    current, previous = float(current), float(previous)
    diff = current - previous
    growth = diff / previous * 100

    if current > previous:
        direction = Direction.UP
    elif current == previous and flat_on_equal:
        direction = Direction.FLAT
    else:
        direction = Direction.DOWN

    return ComparisonResult(
        direction=direction,
        percent=format_percent(abs(growth), 1),
        sign=_SIGNS.get(direction, ""),
        absolute_difference=format_number(abs(diff), 0),
        growth=growth,
    )
