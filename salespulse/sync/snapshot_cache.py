"""
Snapshot Cache

Local persistent cache of an owner's full record set. Snapshots are written
whole and decoded strictly: anything that is not the current payload shape
raises SchemaMismatchError so the reconciler can fall back to a rebuild.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

import structlog
from redis.asyncio import Redis

from salespulse.config import get_settings
from salespulse.data.records import CacheSnapshot
from salespulse.exceptions import SchemaMismatchError, ValidationError
from salespulse.ingestion.normalizer import record_from_document, record_to_document
from salespulse.serving.cache import CacheManager

logger = structlog.get_logger(__name__)
settings = get_settings()

SCHEMA_VERSION = 2

_PAYLOAD_KEYS = (
    "schema_version",
    "records",
    "source_batch_count",
    "captured_at",
    "latest_record_timestamp",
)


def snapshot_key(owner_id: str) -> str:
    """The single cache key holding an owner's full record set"""
    return f"{owner_id}:all-records"


def snapshot_to_payload(snapshot: CacheSnapshot) -> Dict[str, Any]:
    """Encode a snapshot as a JSON-friendly payload"""
    latest = snapshot.latest_record_timestamp
    return {
        "schema_version": SCHEMA_VERSION,
        "records": [record_to_document(r) for r in snapshot.records],
        "source_batch_count": snapshot.source_batch_count,
        "captured_at": snapshot.captured_at.isoformat(),
        "latest_record_timestamp": latest.isoformat() if latest else None,
    }


def _parse_datetime(value: Any, name: str) -> datetime:
    if not isinstance(value, str):
        raise SchemaMismatchError(f"Snapshot field '{name}' is not a timestamp")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise SchemaMismatchError(f"Snapshot field '{name}' is not a timestamp: {value!r}") from e


def snapshot_from_payload(payload: Any) -> CacheSnapshot:
    """
    Decode a cached payload.

    Raises:
        SchemaMismatchError: payload is a legacy or unrecognized shape,
            including one without a usable latest_record_timestamp
    """
    if not isinstance(payload, dict):
        raise SchemaMismatchError(f"Snapshot payload is {type(payload).__name__}, expected an object")

    missing = [key for key in _PAYLOAD_KEYS if key not in payload]
    if missing:
        raise SchemaMismatchError(f"Snapshot payload missing keys: {missing}")

    if payload["schema_version"] != SCHEMA_VERSION:
        raise SchemaMismatchError(
            f"Snapshot schema version {payload['schema_version']!r}, expected {SCHEMA_VERSION}"
        )

    batch_count = payload["source_batch_count"]
    if isinstance(batch_count, bool) or not isinstance(batch_count, int):
        raise SchemaMismatchError("Snapshot field 'source_batch_count' is not an integer")

    if not isinstance(payload["records"], list):
        raise SchemaMismatchError("Snapshot field 'records' is not a list")

    try:
        records = [record_from_document(doc) for doc in payload["records"]]
    except (ValidationError, AttributeError, TypeError) as e:
        raise SchemaMismatchError(f"Snapshot records cannot be decoded: {e}") from e

    return CacheSnapshot(
        records=records,
        source_batch_count=batch_count,
        captured_at=_parse_datetime(payload["captured_at"], "captured_at"),
        latest_record_timestamp=_parse_datetime(
            payload["latest_record_timestamp"], "latest_record_timestamp"
        ),
    )


class SnapshotCache(Protocol):
    """Interface of the local persistent cache"""

    async def get(self, key: str) -> Optional[CacheSnapshot]:
        ...

    async def put(self, key: str, snapshot: CacheSnapshot) -> None:
        ...


class MemorySnapshotCache:
    """Process-local snapshot cache, for development and single-process use"""

    def __init__(self):
        self._payloads: Dict[str, Dict[str, Any]] = {}

    async def get(self, key: str) -> Optional[CacheSnapshot]:
        payload = self._payloads.get(key)
        if payload is None:
            return None
        return snapshot_from_payload(payload)

    async def put(self, key: str, snapshot: CacheSnapshot) -> None:
        self._payloads[key] = snapshot_to_payload(snapshot)


class RedisSnapshotCache:
    """
    Snapshot cache stored in Redis as one JSON document per key, no TTL.

    Example:
        cache = RedisSnapshotCache()
        await cache.put(snapshot_key("owner-1"), snapshot)
    """

    def __init__(self, namespace: Optional[str] = None, client: Optional[Redis] = None):
        self._cache = CacheManager(
            namespace or settings.sync.cache_namespace,
            default_ttl=None,
            client=client,
        )

    async def get(self, key: str) -> Optional[CacheSnapshot]:
        payload = await self._cache.get(key)
        if payload is None:
            return None
        return snapshot_from_payload(payload)

    async def put(self, key: str, snapshot: CacheSnapshot) -> None:
        stored = await self._cache.set(key, snapshot_to_payload(snapshot))
        if not stored:
            raise RuntimeError(f"Snapshot for '{key}' could not be serialized")
        logger.debug("Snapshot stored", key=key, records=len(snapshot.records))


def create_snapshot_cache() -> SnapshotCache:
    """Create the snapshot cache selected by SYNC_CACHE_BACKEND"""
    if settings.sync.cache_backend == "memory":
        return MemorySnapshotCache()
    return RedisSnapshotCache()
