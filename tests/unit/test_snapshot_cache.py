"""
Unit Tests - Snapshot Cache
"""
import json
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from salespulse.data.records import CacheSnapshot
from salespulse.exceptions import SchemaMismatchError
from salespulse.sync import snapshot_cache
from salespulse.sync.snapshot_cache import (
    SCHEMA_VERSION,
    MemorySnapshotCache,
    RedisSnapshotCache,
    create_snapshot_cache,
    snapshot_from_payload,
    snapshot_key,
    snapshot_to_payload,
)


class FakeRedis:
    """Minimal async key/value stand-in for a Redis client"""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True


@pytest.fixture
def snapshot(sample_records):
    return CacheSnapshot.build(sample_records, source_batch_count=3, captured_at=datetime(2025, 2, 1, 8, 0))


class TestPayloadCodec:
    """Tests for snapshot payload encoding"""

    def test_key_format(self):
        assert snapshot_key("owner-1") == "owner-1:all-records"

    def test_roundtrip(self, snapshot):
        payload = snapshot_to_payload(snapshot)

        assert payload["schema_version"] == SCHEMA_VERSION
        assert payload["latest_record_timestamp"] == "2025-01-13T19:45:00"

        decoded = snapshot_from_payload(json.loads(json.dumps(payload)))
        assert decoded.records == snapshot.records
        assert decoded.source_batch_count == 3
        assert decoded.latest_record_timestamp == datetime(2025, 1, 13, 19, 45)
        assert decoded.has_valid_cursor

    @pytest.mark.parametrize("mutate", [
        lambda p: p.update(schema_version=1),
        lambda p: p.pop("latest_record_timestamp"),
        lambda p: p.update(latest_record_timestamp=None),
        lambda p: p.update(latest_record_timestamp="yesterday"),
        lambda p: p.update(source_batch_count="3"),
        lambda p: p.update(source_batch_count=True),
        lambda p: p.update(records={"a": 1}),
        lambda p: p.update(records=[{"bill_number": "X", "timestamp": None}]),
        lambda p: p.update(records=["not a document"]),
    ])
    def test_unrecognized_shapes(self, snapshot, mutate):
        payload = snapshot_to_payload(snapshot)
        mutate(payload)

        with pytest.raises(SchemaMismatchError):
            snapshot_from_payload(payload)

    @pytest.mark.parametrize("payload", [None, [], "records", 42])
    def test_non_mapping_payload(self, payload):
        with pytest.raises(SchemaMismatchError):
            snapshot_from_payload(payload)


class TestMemorySnapshotCache:
    """Tests for MemorySnapshotCache"""

    async def test_get_missing(self):
        assert await MemorySnapshotCache().get("nope") is None

    async def test_put_replaces_whole_snapshot(self, snapshot, sample_records):
        cache = MemorySnapshotCache()
        await cache.put("k", snapshot)
        await cache.put("k", CacheSnapshot.build(sample_records[:2], 1))

        stored = await cache.get("k")

        assert stored.source_batch_count == 1
        assert len(stored.records) == 2


class TestRedisSnapshotCache:
    """Tests for RedisSnapshotCache"""

    async def test_put_is_single_set_without_ttl(self, snapshot):
        client = AsyncMock()
        cache = RedisSnapshotCache(namespace="test", client=client)

        await cache.put("owner-1:all-records", snapshot)

        client.set.assert_awaited_once()
        client.setex.assert_not_called()
        key, value = client.set.await_args.args
        assert key == "test:owner-1:all-records"
        assert json.loads(value)["source_batch_count"] == 3

    async def test_roundtrip(self, snapshot):
        cache = RedisSnapshotCache(namespace="test", client=FakeRedis())

        await cache.put("k", snapshot)
        stored = await cache.get("k")

        assert stored.records == snapshot.records
        assert stored.latest_record_timestamp == snapshot.latest_record_timestamp

    async def test_get_missing(self):
        assert await RedisSnapshotCache(client=FakeRedis()).get("k") is None

    async def test_legacy_value_is_schema_mismatch(self):
        client = FakeRedis()
        client.data["test:k"] = json.dumps([{"Bill Number": "1"}])

        with pytest.raises(SchemaMismatchError):
            await RedisSnapshotCache(namespace="test", client=client).get("k")


class TestFactory:
    """Tests for create_snapshot_cache"""

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setattr(snapshot_cache.settings.sync, "cache_backend", "memory")
        assert isinstance(create_snapshot_cache(), MemorySnapshotCache)

    def test_redis_backend(self, monkeypatch):
        monkeypatch.setattr(snapshot_cache.settings.sync, "cache_backend", "redis")
        assert isinstance(create_snapshot_cache(), RedisSnapshotCache)
