"""
Batch Upload Loader

Reads POS export files, normalizes them and appends each file to the
remote store as one upload batch.
Supports:
- CSV, JSON, NDJSON, Parquet and Excel exports
- File hashing for audit and duplicate detection
- Directory loads with a per-file result
"""

import hashlib
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import polars as pl
import structlog
from pydantic import BaseModel

from salespulse.data.records import utc_now
from salespulse.ingestion.normalizer import RecordNormalizer
from salespulse.sync.remote_store import SqlRemoteStore

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported upload formats"""
    CSV = "csv"
    JSON = "json"
    NDJSON = "ndjson"
    PARQUET = "parquet"
    EXCEL = "xlsx"

    @classmethod
    def from_path(cls, path: Path) -> "FileFormat":
        suffix = path.suffix.lower().lstrip(".")
        aliases = {"jsonl": cls.NDJSON, "xls": cls.EXCEL}
        if suffix in aliases:
            return aliases[suffix]
        try:
            return cls(suffix)
        except ValueError:
            raise ValueError(f"Unsupported file format: {path.suffix or path.name}") from None


class LoadStatus(str, Enum):
    """Upload load status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LoadResult(BaseModel):
    """Result of loading one upload file"""
    file_path: str
    owner_id: str
    status: LoadStatus
    batch_id: Optional[int] = None
    rows_read: int = 0
    rows_loaded: int = 0
    rows_skipped: int = 0
    numeric_fields_defaulted: int = 0
    error_message: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


class BatchLoader:
    """
    Loads POS upload files into the remote record store.

    Example:
        loader = BatchLoader()
        result = await loader.load("uploads/january.xlsx", owner_id="owner-1")
    """

    def __init__(
        self,
        normalizer: Optional[RecordNormalizer] = None,
        store: Optional[SqlRemoteStore] = None,
    ):
        self.normalizer = normalizer or RecordNormalizer()
        self.store = store or SqlRemoteStore()

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file for deduplication"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, file_path: Path) -> pl.DataFrame:
        # every column as text, the normalizer owns type coercion
        return pl.read_csv(file_path, infer_schema_length=0)

    def _read_json(self, file_path: Path) -> pl.DataFrame:
        return pl.read_json(file_path)

    def _read_ndjson(self, file_path: Path) -> pl.DataFrame:
        return pl.read_ndjson(file_path)

    def _read_parquet(self, file_path: Path) -> pl.DataFrame:
        return pl.read_parquet(file_path)

    def _read_excel(self, file_path: Path) -> pl.DataFrame:
        return pl.read_excel(file_path)

    def read_file(self, file_path: Union[str, Path]) -> pl.DataFrame:
        """Read a file based on its extension"""
        file_path = Path(file_path)
        readers = {
            FileFormat.CSV: self._read_csv,
            FileFormat.JSON: self._read_json,
            FileFormat.NDJSON: self._read_ndjson,
            FileFormat.PARQUET: self._read_parquet,
            FileFormat.EXCEL: self._read_excel,
        }
        return readers[FileFormat.from_path(file_path)](file_path)

    async def load(self, file_path: Union[str, Path], owner_id: str) -> LoadResult:
        """
        Normalize a file and store it as one upload batch.

        Validation errors do not raise: the result comes back FAILED with
        the error message and nothing is stored.
        """
        file_path = Path(file_path)
        started_at = utc_now()

        result = LoadResult(
            file_path=str(file_path),
            owner_id=owner_id,
            status=LoadStatus.RUNNING,
            started_at=started_at,
        )

        logger.info("Starting upload load", file=str(file_path), owner_id=owner_id)

        try:
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")

            result.file_hash = self._compute_file_hash(file_path)

            df = self.read_file(file_path)
            result.rows_read = len(df)

            records, stats = self.normalizer.normalize_with_stats(df.to_dicts())
            result.rows_skipped = stats.rows_skipped
            result.numeric_fields_defaulted = stats.numeric_fields_defaulted

            result.batch_id = await self.store.add_batch(
                owner_id,
                records,
                source_name=file_path.name,
                file_hash=result.file_hash,
            )

            result.status = LoadStatus.COMPLETED
            result.rows_loaded = len(records)
            result.completed_at = utc_now()
            result.load_duration_seconds = (result.completed_at - started_at).total_seconds()

            logger.info(
                "Upload load completed",
                owner_id=owner_id,
                batch_id=result.batch_id,
                rows_loaded=result.rows_loaded,
                rows_skipped=result.rows_skipped,
                duration_seconds=result.load_duration_seconds,
            )

        except Exception as e:
            result.status = LoadStatus.FAILED
            result.error_message = str(e)
            result.completed_at = utc_now()
            result.load_duration_seconds = (result.completed_at - started_at).total_seconds()

            logger.error(
                "Upload load failed",
                error=str(e),
                error_type=type(e).__name__,
                file=str(file_path),
                owner_id=owner_id,
            )

        return result

    async def load_directory(
        self,
        directory: Union[str, Path],
        owner_id: str,
        pattern: str = "*",
    ) -> List[LoadResult]:
        """
        Load every supported file in a directory, in name order.

        Each file becomes its own batch.
        """
        directory = Path(directory)
        files = []
        for path in sorted(directory.glob(pattern)):
            try:
                FileFormat.from_path(path)
            except ValueError:
                continue
            if path.is_file():
                files.append(path)

        logger.info(f"Found {len(files)} files to load", directory=str(directory), pattern=pattern)

        results = []
        for file_path in files:
            results.append(await self.load(file_path, owner_id))

        successful = sum(1 for r in results if r.status == LoadStatus.COMPLETED)
        failed = sum(1 for r in results if r.status == LoadStatus.FAILED)

        logger.info(
            f"Directory load completed: {successful} successful, {failed} failed",
            total_files=len(files),
        )

        return results
