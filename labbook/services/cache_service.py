"""
Redis caching service for resource listings.

CACHING STRATEGY
================

What we cache:
  - Resource listing responses, JSON-serialized
  - Cache key pattern: "resources:list:dept={dept}&loc={loc}&all={include_inactive}"

Why:
  - The machine catalogue is read on every dashboard load
  - It changes only when an administrator edits a machine

Invalidation strategy:
  - On any resource create/update/delete: delete all "resources:list:*" keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Why NOT cache bookings or availability:
  - Admission needs the authoritative snapshot; a stale slot list would
    only produce confusing SLOT_CONFLICT responses later

Every Redis error degrades to a cache miss.
"""

import json
from typing import Optional

import redis.asyncio as redis

from labbook.core.config import get_settings
from labbook.core.logging import get_logger
from labbook.core.metrics import record_cache_operation
from labbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

LIST_PREFIX = "resources:list:"


def _make_resource_list_key(
    department: Optional[str], location: Optional[str], include_inactive: bool
) -> str:
    return f"{LIST_PREFIX}dept={department or '*'}&loc={location or '*'}&all={include_inactive}"


async def get_cached_resources(
    department: Optional[str], location: Optional[str], include_inactive: bool
) -> Optional[dict]:
    """Retrieve a cached resource list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_resource_list_key(department, location, include_inactive)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_resources(
    department: Optional[str],
    location: Optional[str],
    include_inactive: bool,
    data: dict,
) -> None:
    """Cache a resource list response with TTL."""
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_resource_list_key(department, location, include_inactive)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_resource_cache() -> None:
    """Invalidate all cached resource listings."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
