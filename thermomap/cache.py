"""
Redis caching module for ThermoMap.
Caches fetched boundary datasets by URL with a 30-day TTL.
Falls back to in-memory cache if Redis is unavailable.
"""

import json
import os
from hashlib import md5
from typing import Optional, Any

import redis

from .logger import logger

# Cache TTL: 30 days in seconds
CACHE_TTL = 3600 * 24 * 30

REDIS_URL = os.getenv("THERMOMAP_REDIS_URL", "redis://localhost:6379/0")

try:
    redis_client = redis.Redis.from_url(
        REDIS_URL, decode_responses=True, socket_connect_timeout=0.5
    )
    redis_client.ping()
    REDIS_AVAILABLE = True
    logger.info("✅ Redis cache connected")
except redis.RedisError:
    redis_client = None
    REDIS_AVAILABLE = False
    logger.info("⚠️ Redis unavailable, using in-memory cache")

# In-memory fallback cache
_memory_cache = {}
MEMORY_CACHE_LIMIT = 16


def cache_key(prefix: str, *args) -> str:
    """Generate a cache key from prefix and arguments."""
    data = json.dumps(args, sort_keys=True)
    return f"thermomap:{prefix}:{md5(data.encode()).hexdigest()}"


def get_cached(key: str) -> Optional[Any]:
    """Get a value from cache."""
    if REDIS_AVAILABLE:
        try:
            value = redis_client.get(key)
            if value:
                return json.loads(value)
        except redis.RedisError as e:
            logger.warning(f"Redis get error: {e}")
        return None
    return _memory_cache.get(key)


def set_cached(key: str, value: Any) -> bool:
    """Set a value in cache with TTL."""
    if REDIS_AVAILABLE:
        try:
            redis_client.setex(key, CACHE_TTL, json.dumps(value))
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis set error: {e}")
            return False

    _memory_cache[key] = value
    # Boundary datasets are large, keep only a few
    while len(_memory_cache) > MEMORY_CACHE_LIMIT:
        del _memory_cache[next(iter(_memory_cache))]
    return True


def cache_boundaries(url: str) -> Optional[dict]:
    """Get a cached boundary dataset for a URL."""
    return get_cached(cache_key("boundaries", url.strip()))


def set_cache_boundaries(url: str, geojson: dict) -> bool:
    """Cache a boundary dataset."""
    return set_cached(cache_key("boundaries", url.strip()), geojson)
