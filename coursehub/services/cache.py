"""Read-through cache for student dashboards.

Flow:  GET /v1/me/dashboard → cache → miss → aggregate → populate → return
                              cache → hit  → return

Two complementary invalidation strategies:

  1. TTL: every entry expires after DASHBOARD_CACHE_TTL seconds, so a
     missed invalidation only serves stale data for a bounded time.
  2. Explicit: every write that changes a student's progress (enroll,
     start, lesson completion, quiz attempt) deletes that student's
     entry before the response is returned.

The cache is an optimisation only. Backend errors are counted and
treated as a miss (on read) or ignored (on write/delete); they never fail
the request.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable
from uuid import UUID

from redis.exceptions import RedisError

from coursehub.core.metrics import CACHE_OPERATIONS
from coursehub.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests.  No TTL enforcement.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()


def dashboard_key(student_id: UUID) -> str:
    return f"dashboard:{student_id}"


async def cache_get(key: str) -> str | None:
    try:
        value = await cache_service.get(key)
    except (RedisError, OSError):
        CACHE_OPERATIONS.labels(operation="error").inc()
        logger.warning("Cache read failed for %s, treating as miss", key)
        return None
    CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
    return value


async def cache_set(key: str, value: str, ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        return
    try:
        await cache_service.set(key, value, ttl_seconds)
    except (RedisError, OSError):
        CACHE_OPERATIONS.labels(operation="error").inc()
        logger.warning("Cache write failed for %s", key)


async def invalidate_dashboard(student_id: UUID) -> None:
    key = dashboard_key(student_id)
    try:
        await cache_service.delete(key)
    except (RedisError, OSError):
        CACHE_OPERATIONS.labels(operation="error").inc()
        logger.warning("Cache invalidation failed for %s", key)
