"""
Redis client wrapper.

Responsibilities:
  • Connection lifecycle — one client per process, created at startup
  • CacheStore          — the narrow get/set/delete interface the feed
                           service depends on, so tests can swap in a fake

The feed snapshot itself (key, TTL, serialization) is owned by
postfeed.services.feed; nothing here knows about posts.
"""
import logging
from typing import Optional, Protocol

import redis.asyncio as aioredis

from postfeed.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCacheStore:
    """CacheStore backed by plain Redis strings."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[bytes]:
        return await self._client.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        # SET ... EX is a single command: readers never see a value without TTL
        await self._client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        # DEL on a missing key returns 0; nothing to handle
        await self._client.delete(key)


def get_cache() -> CacheStore:
    """FastAPI dependency for the shared cache."""
    return RedisCacheStore(get_redis())
