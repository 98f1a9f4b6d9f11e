"""
Serving Module
"""
from .cache import CacheManager, cache_get, cache_set, close_redis, get_redis, init_redis

__all__ = [
    "CacheManager",
    "init_redis",
    "close_redis",
    "get_redis",
    "cache_get",
    "cache_set",
]
