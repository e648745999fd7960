"""Tests for the Redis read cache fallbacks."""

import pytest

from packtrack.utils.cache import ReadCache


@pytest.mark.cache
@pytest.mark.asyncio
class TestReadCache:
    """The cache must never break a read path."""

    async def test_disabled_cache_is_a_no_op(self):
        cache = ReadCache("redis://localhost:6379/0", enabled=False)

        await cache.set_json("expected:all", [{"sku": "A001"}])

        assert await cache.get_json("expected:all") is None
        assert await cache.client() is None
        assert await cache.ping() is False
        await cache.invalidate("expected", "locations")
        await cache.close()

    async def test_unreachable_redis_falls_back(self):
        # Nothing listens on port 1
        cache = ReadCache("redis://127.0.0.1:1/0", enabled=True)

        await cache.set_json("locations", [])
        assert await cache.get_json("locations") is None
        await cache.invalidate("locations")
        await cache.close()

    async def test_keys_are_namespaced(self):
        cache = ReadCache("redis://localhost:6379/0", enabled=False)
        assert cache._key("progress") == "packtrack:progress"
