"""Redis read cache for projection and dashboard queries.

Only derived, read-heavy views are cached (expected inventory lists,
location directory, batch progress).  The ledger itself is never served
from cache.  Every stock-changing endpoint invalidates the affected
prefixes, and entries expire after ``cache_ttl_seconds`` regardless.

Redis is optional: when it is disabled or unreachable every call falls
back to the database and the error is logged, never raised.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from fastapi import Request

from packtrack.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "packtrack"


class ReadCache:
    """Thin JSON wrapper around a redis.asyncio client."""

    def __init__(self, url: str, ttl: int = 60, enabled: bool = True):
        self.url = url
        self.ttl = ttl
        self.enabled = enabled
        self._client: Optional[redis.Redis] = None

    def _key(self, key: str) -> str:
        return f"{KEY_PREFIX}:{key}"

    async def client(self) -> Optional[redis.Redis]:
        if not self.enabled:
            return None
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
        return self._client

    async def get_json(self, key: str) -> Any | None:
        client = await self.client()
        if client is None:
            return None
        try:
            cached_value = await client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis error (falling back to uncached): {e}")
            return None
        if cached_value is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return json.loads(cached_value)

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> None:
        client = await self.client()
        if client is None:
            return
        try:
            await client.setex(self._key(key), ttl or self.ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Failed to cache {key}: {e}")

    async def invalidate(self, *prefixes: str) -> None:
        """Delete every key under the given prefixes (e.g. ``"expected"``)."""
        client = await self.client()
        if client is None:
            return
        try:
            keys = []
            for prefix in prefixes:
                async for key in client.scan_iter(match=self._key(f"{prefix}*")):
                    keys.append(key)
            if keys:
                await client.delete(*keys)
                logger.info(f"Invalidated {len(keys)} cache keys for {', '.join(prefixes)}")
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cache: {e}")

    async def clear(self) -> None:
        client = await self.client()
        if client is None:
            return
        try:
            keys = [key async for key in client.scan_iter(match=self._key("*"))]
            if keys:
                await client.delete(*keys)
            logger.info("Cleared read cache")
        except redis.RedisError as e:
            logger.warning(f"Failed to clear cache: {e}")

    async def ping(self) -> bool:
        client = await self.client()
        if client is None:
            return False
        await client.ping()
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_cache() -> ReadCache:
    return ReadCache(
        settings.redis_url,
        ttl=settings.cache_ttl_seconds,
        enabled=settings.cache_enabled,
    )


def get_cache(request: Request) -> ReadCache:
    """FastAPI dependency; the cache instance is owned by the app lifespan."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        cache = build_cache()
        request.app.state.cache = cache
    return cache


# Cache prefixes touched by stock changes
STOCK_VIEW_PREFIXES = ("expected", "locations", "progress")
