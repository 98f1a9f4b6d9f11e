"""
Redis Cache Module

Redis connection handling and JSON get/set helpers used by the snapshot
cache:
- Connection pooling
- Automatic serialization
- Namespaced keys
"""

import json
from datetime import timedelta
from typing import Any, Optional, Union

import structlog
from redis.asyncio import ConnectionPool, Redis

from salespulse.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )

    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def cache_get(key: str, client: Optional[Redis] = None) -> Optional[Any]:
    """
    Get value from cache.

    Args:
        key: Cache key
        client: Redis client, defaults to the global one

    Returns:
        Decoded JSON value, the raw value if it is not JSON, or None if not found
    """
    client = client or get_redis()
    value = await client.get(key)

    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
    client: Optional[Redis] = None,
) -> bool:
    """
    Set value in cache with a single SET, so readers see the old or the new
    value and never a partial one.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time-to-live in seconds or timedelta, None to keep forever
        client: Redis client, defaults to the global one

    Returns:
        True if successful
    """
    client = client or get_redis()

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize value for cache: {e}")
        return False

    if ttl:
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        await client.setex(key, ttl, serialized)
    else:
        await client.set(key, serialized)

    return True


class CacheManager:
    """
    Cache manager with namespace support.

    Example:
        cache = CacheManager("salespulse:snapshots")
        await cache.set("owner-1:all-records", payload)
        payload = await cache.get("owner-1:all-records")
    """

    def __init__(
        self,
        namespace: str,
        default_ttl: Optional[int] = None,
        client: Optional[Redis] = None,
    ):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self.client = client

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        return await cache_get(self._key(key), client=self.client)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache"""
        return await cache_set(self._key(key), value, ttl or self.default_ttl, client=self.client)
