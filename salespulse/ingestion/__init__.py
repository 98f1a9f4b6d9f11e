"""
Data Ingestion Module
"""
from .batch_loader import BatchLoader, FileFormat, LoadResult, LoadStatus
from .normalizer import (
    ColumnMapping,
    NormalizationStats,
    RecordNormalizer,
    normalize,
    record_from_document,
    record_to_document,
)

__all__ = [
    "BatchLoader",
    "FileFormat",
    "LoadResult",
    "LoadStatus",
    "ColumnMapping",
    "NormalizationStats",
    "RecordNormalizer",
    "normalize",
    "record_from_document",
    "record_to_document",
]
