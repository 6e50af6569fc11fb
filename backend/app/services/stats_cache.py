# backend/app/services/stats_cache.py
"""
Per-user TTL cache for nutrition statistics.

Keys are namespaced by user so every write for a user can drop all of that
user's cached aggregates at once.
"""

from typing import Any, Dict, Optional, Tuple
from datetime import date, datetime
import json
import logging
import time

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "stats"


def make_key(user_id: int, *parts: Any) -> str:
    return ":".join([KEY_PREFIX, str(user_id)] + [str(part) for part in parts])


def _json_default(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def to_cacheable(value: Any) -> Any:
    """JSON-normalise a value so every backend hands back the same types"""
    return json.loads(json.dumps(value, default=_json_default))


class MemoryStatsCache:
    """In-process cache storing (value, stored_at) pairs"""

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[str, Tuple[Any, float]] = {}

    def get(self, user_id: int, *parts: Any) -> Optional[Any]:
        cache_key = make_key(user_id, *parts)
        if cache_key in self._cache:
            value, timestamp = self._cache[cache_key]
            if time.time() - timestamp < self.ttl_seconds:
                logger.debug(f"Cache hit for {cache_key}")
                return value
            # Expired, remove
            del self._cache[cache_key]
        return None

    def set(self, user_id: int, value: Any, *parts: Any) -> None:
        self._cache[make_key(user_id, *parts)] = (to_cacheable(value), time.time())

    def invalidate_user(self, user_id: int) -> int:
        prefix = make_key(user_id) + ":"
        keys = [key for key in self._cache if key.startswith(prefix)]
        for key in keys:
            del self._cache[key]
        logger.info(f"Cleared {len(keys)} cache entries for user {user_id}")
        return len(keys)

    def clear(self) -> None:
        self._cache.clear()


class RedisStatsCache:
    """Redis-backed cache using setex and a per-user key scan"""

    def __init__(self, ttl_seconds: int, redis_client: Optional[redis.Redis] = None):
        self.ttl_seconds = ttl_seconds
        self.redis_client = redis_client or redis.from_url(settings.redis_url)

    def get(self, user_id: int, *parts: Any) -> Optional[Any]:
        cached = self.redis_client.get(make_key(user_id, *parts))
        if cached:
            return json.loads(cached)
        return None

    def set(self, user_id: int, value: Any, *parts: Any) -> None:
        self.redis_client.setex(
            make_key(user_id, *parts),
            self.ttl_seconds,
            json.dumps(value, default=_json_default)
        )

    def invalidate_user(self, user_id: int) -> int:
        keys = list(self.redis_client.scan_iter(match=make_key(user_id) + ":*"))
        if keys:
            self.redis_client.delete(*keys)
        logger.info(f"Cleared {len(keys)} cache entries for user {user_id}")
        return len(keys)

    def clear(self) -> None:
        keys = list(self.redis_client.scan_iter(match=f"{KEY_PREFIX}:*"))
        if keys:
            self.redis_client.delete(*keys)


def build_stats_cache():
    if settings.cache_backend == "redis":
        return RedisStatsCache(settings.stats_cache_ttl_seconds)
    return MemoryStatsCache(settings.stats_cache_ttl_seconds)


# Global cache shared by request-scoped services
stats_cache = build_stats_cache()


def get_stats_cache():
    """FastAPI dependency returning the shared statistics cache"""
    return stats_cache
