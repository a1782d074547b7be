"""
Redis cache for the public event listing.

The listing shows available_spots, so every reservation and cancellation
drops the cached pages. The cache is display-only: the capacity ledger never
reads it, and a stale page can at worst show a sold-out event as bookable,
which the locked re-read in reserve() then rejects.

When Redis is disabled or unreachable every call degrades to a no-op.
"""

import json
from typing import Optional

import redis.asyncio as redis
from event_reservations.core.config import get_settings
from event_reservations.core.logging import get_logger
from event_reservations.core.metrics import record_cache_operation

logger = get_logger(__name__)

LISTING_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        logger.info("redis_connected", url=settings.REDIS_URL)
        _redis_client = client

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def listing_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{LISTING_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_listing(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    client = await get_redis()
    if client is None:
        return None

    key = listing_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    return json.loads(data) if data else None


async def set_cached_listing(page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
    client = await get_redis()
    if client is None:
        return

    key = listing_key(page, page_size, upcoming_only)
    ttl = get_settings().REDIS_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_listing_cache() -> None:
    """Drop every cached listing page (SCAN over the listing prefix)."""
    client = await get_redis()
    if client is None:
        return

    try:
        keys = [key async for key in client.scan_iter(match=f"{LISTING_PREFIX}*", count=100)]
        if keys:
            await client.delete(*keys)
        logger.debug("cache_invalidated", keys_deleted=len(keys))
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    client = await get_redis()
    if client is None:
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
