"""
Feed service — the only owner of the cached feed snapshot.

Read path (cache-aside):
  1. GET the snapshot key.
  2. Hit  → deserialize and return as-is; the TTL is the only staleness bound.
  3. Miss → joined store read (author joined, newest first), serialize,
            SET with TTL in one command, return.

Write path: mutation handlers commit to the store, then call
``invalidate_feed()``. No other code touches the cache key.

Cache failures on the read path are logged and treated as a miss; the
store is the source of truth. A snapshot that no longer decodes as the
current post shape (written by an older release, or truncated) counts as
a failed read and is overwritten by the store read. Store failures
propagate and nothing is cached. Invalidation failures propagate as well;
the TTL heals the cache if a delete is lost.

A reader that misses can load the store just before a writer commits and
deletes the key, then SET its older snapshot after that delete. The stale
snapshot is then served until the TTL expires; only the next mutation or
the expiry clears it.
"""
import logging
import time

from fastapi import Depends
from opentelemetry import trace
from pydantic import TypeAdapter, ValidationError as SnapshotDecodeError
from sqlalchemy.ext.asyncio import AsyncSession

from postfeed.clients.redis_client import CacheStore, get_cache
from postfeed.config import settings
from postfeed.database import get_db
from postfeed.schemas import PostOut
from postfeed.store import PostStore
from postfeed.telemetry import (
    FEED_CACHE_LOOKUPS_TOTAL,
    FEED_INVALIDATIONS_TOTAL,
    FEED_LATENCY,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FEED_SNAPSHOT = TypeAdapter(list[PostOut])


class FeedService:
    def __init__(
        self,
        store: PostStore,
        cache: CacheStore,
        key: str = settings.feed_cache_key,
        ttl_seconds: int = settings.feed_cache_ttl,
    ) -> None:
        self.store = store
        self.cache = cache
        self.key = key
        self.ttl_seconds = ttl_seconds

    async def get_feed(self) -> list[PostOut]:
        start_time = time.time()
        with tracer.start_as_current_span("get_feed") as span:
            posts = self._decode_snapshot(await self._read_snapshot())
            if posts is not None:
                span.set_attribute("feed.cache", "hit")
                FEED_CACHE_LOOKUPS_TOTAL.labels(result="hit").inc()
                logger.debug("Feed served from cache")
            else:
                span.set_attribute("feed.cache", "miss")
                FEED_CACHE_LOOKUPS_TOTAL.labels(result="miss").inc()
                logger.debug("Feed cache miss — reading from store")
                fresh = await self.store.joined_feed_read()
                payload = FEED_SNAPSHOT.dump_json(fresh)
                await self._write_snapshot(payload)
                # Hand back exactly what a later cache hit will return
                posts = FEED_SNAPSHOT.validate_json(payload)

            span.set_attribute("feed.posts_returned", len(posts))
            FEED_LATENCY.observe(time.time() - start_time)
            return posts

    async def invalidate_feed(self, reason: str = "unspecified") -> None:
        """Drop the snapshot; the next get_feed() recomputes from the store."""
        with tracer.start_as_current_span("invalidate_feed") as span:
            span.set_attribute("feed.invalidation_reason", reason)
            await self.cache.delete(self.key)
            FEED_INVALIDATIONS_TOTAL.labels(reason=reason).inc()
            logger.info("Feed cache invalidated (%s)", reason)

    async def get_post_by_id(self, post_id: str) -> list[PostOut]:
        """Single-post reads bypass the feed cache entirely."""
        with tracer.start_as_current_span("get_post_by_id") as span:
            span.set_attribute("post.id", post_id)
            return await self.store.joined_post_read(post_id)

    async def _read_snapshot(self) -> bytes | None:
        try:
            return await self.cache.get(self.key)
        except Exception as exc:
            FEED_CACHE_LOOKUPS_TOTAL.labels(result="error").inc()
            logger.warning("Feed cache read failed (%s) — falling back to store", exc)
            return None

    def _decode_snapshot(self, cached: bytes | None) -> list[PostOut] | None:
        if cached is None:
            return None
        try:
            return FEED_SNAPSHOT.validate_json(cached)
        except SnapshotDecodeError as exc:
            FEED_CACHE_LOOKUPS_TOTAL.labels(result="error").inc()
            logger.warning(
                "Feed cache snapshot unreadable (%d errors) — recomputing from store",
                exc.error_count(),
            )
            return None

    async def _write_snapshot(self, payload: bytes) -> None:
        try:
            await self.cache.set(self.key, payload, self.ttl_seconds)
        except Exception as exc:
            logger.warning("Feed cache write failed (%s) — serving uncached", exc)


def get_feed_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
) -> FeedService:
    return FeedService(PostStore(db), cache)
