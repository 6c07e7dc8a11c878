import json
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings

logger = logging.getLogger(__name__)

# session.info key holding cache keys (or patterns) to drop after commit
_STALE_KEYS = "conduit.stale_cache_keys"


def article_key(slug: str) -> str:
    return f"articles:detail:{slug}"


class CacheManager:
    """
    Redis store for article rows that read the same for every caller.

    Writers never delete keys directly.  They mark keys stale on their
    session and ``get_db`` drops them once the transaction has committed,
    so a concurrent read cannot repopulate a key with pre-commit data
    after it was dropped.  With no Redis connection every call is a no-op.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    async def connect(self) -> None:
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> dict | None:
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            data = None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def _drop(self, key_or_pattern: str) -> None:
        try:
            if "*" not in key_or_pattern:
                await self._redis.delete(key_or_pattern)
                return
            keys = [key async for key in self._redis.scan_iter(match=key_or_pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache dropped %d key(s) matching %r", len(keys), key_or_pattern)
        except Exception as exc:
            logger.debug("Cache DELETE error for %r: %s", key_or_pattern, exc)

    # ------------------------------------------------------------------
    # Invalidation, applied after commit
    # ------------------------------------------------------------------

    def invalidate_article(self, db: AsyncSession, *slugs: str) -> None:
        """Mark the rows for *slugs* stale (old and new slug on a rename)."""
        db.info.setdefault(_STALE_KEYS, set()).update(article_key(s) for s in slugs if s)

    def invalidate_author(self, db: AsyncSession) -> None:
        # Rows embed the author's public fields and there is no author -> slug
        # index, so the whole detail namespace goes.
        db.info.setdefault(_STALE_KEYS, set()).add(article_key("*"))

    async def apply_invalidations(self, db: AsyncSession) -> None:
        """Drop everything marked stale on *db*.  Call after a successful commit."""
        stale = db.info.pop(_STALE_KEYS, set())
        if not self._redis:
            return
        for key in sorted(stale):
            await self._drop(key)

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "connected": self._redis is not None,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


cache = CacheManager()
