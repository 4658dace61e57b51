"""
@file cache.py
@brief Redis cache manager singleton
@details
Provides a unified interface for Redis operations and connection management.
Keys are namespaced under ``catchstat:``. Aggregation responses are keyed by
the region table fingerprint plus a digest of the request body, so a region
reload changes the key; facility listings are invalidated after batch runs.

The cache is optional: every operation degrades to a miss/no-op when Redis
is unavailable.

@author Catchstat Project
@date 2026-10-18
"""

import hashlib
import json
import logging
from typing import Optional, Any

import redis.asyncio as redis

from catchstat.core.config import CACHE_TTL, REDIS_URL

logger = logging.getLogger(__name__)

KEY_PREFIX = "catchstat"


def make_key(*parts: Any) -> str:
    """Namespaced cache key from string parts."""
    return ":".join([KEY_PREFIX] + [str(p) for p in parts])


def digest(payload: Any) -> str:
    """Stable short digest of a JSON-serializable payload."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha1(encoded).hexdigest()


class RedisCache:
    """
    @brief Singleton wrapper for Async Redis client
    """
    _instance: Optional['RedisCache'] = None
    client: Optional[redis.Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisCache, cls).__new__(cls)
        return cls._instance

    async def connect(self, url: str = REDIS_URL):
        """
        @brief Initialize Redis connection pool
        """
        try:
            self.client = redis.from_url(url, encoding="utf-8", decode_responses=True)
            await self.client.ping()
            logger.info(f"Connected to Redis at {url}")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self.client = None

    async def close(self):
        if self.client:
            await self.client.close()
            logger.info("Redis connection closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        @brief Retrieve value from cache, None on miss or error
        """
        if not self.client:
            return None
        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Redis get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = CACHE_TTL):
        """
        @brief Set value in cache with TTL
        """
        if not self.client:
            return
        try:
            await self.client.setex(key, ttl, json.dumps(value))
        except Exception as e:
            logger.warning(f"Redis set error for {key}: {e}")

    async def invalidate(self, *parts: Any) -> int:
        """
        @brief Delete every key under the given namespace parts
        @return Number of keys deleted
        """
        if not self.client:
            return 0
        pattern = make_key(*parts) + "*"
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if keys:
                await self.client.delete(*keys)
            return len(keys)
        except Exception as e:
            logger.warning(f"Redis invalidate error for {pattern}: {e}")
            return 0


# Global instance
cache = RedisCache()
