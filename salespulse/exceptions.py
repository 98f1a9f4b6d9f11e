"""
SalesPulse Exceptions

Error taxonomy shared by ingestion, synchronization and the HTTP layer.
"""

from typing import List, Optional


class SalesPulseError(Exception):
    """Base class for all SalesPulse errors"""


class ValidationError(SalesPulseError):
    """
    Raised when uploaded rows are malformed or incomplete.

    Attributes:
        missing_columns: Required columns absent from the first valid row
        bill_number: Transaction the offending row belongs to
        raw_value: The raw value that failed to parse
    """

    def __init__(
        self,
        message: str,
        missing_columns: Optional[List[str]] = None,
        bill_number: Optional[str] = None,
        raw_value: Optional[str] = None,
    ):
        super().__init__(message)
        self.missing_columns = missing_columns or []
        self.bill_number = bill_number
        self.raw_value = raw_value


class SyncError(SalesPulseError):
    """
    Raised when the remote store is unavailable or a page fetch fails.

    The synchronization is aborted as a whole and nothing is cached.
    """

    def __init__(
        self,
        message: str,
        owner_id: Optional[str] = None,
        fetched: int = 0,
        total: int = 0,
    ):
        super().__init__(message)
        self.owner_id = owner_id
        self.fetched = fetched
        self.total = total


class SchemaMismatchError(SalesPulseError):
    """Raised when a cached snapshot is in an unrecognized shape"""
