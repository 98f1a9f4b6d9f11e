"""
Domain Records Module
"""
from .records import CacheSnapshot, PeriodWindow, SalesRecord, latest_timestamp

__all__ = [
    "CacheSnapshot",
    "PeriodWindow",
    "SalesRecord",
    "latest_timestamp",
]
