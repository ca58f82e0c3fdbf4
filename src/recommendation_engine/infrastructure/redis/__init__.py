"""Redis cache infrastructure with graceful degradation."""

from typing import Any

import orjson
import redis.asyncio as aioredis
import structlog

from recommendation_engine.config import get_settings
from shared.constants import MAX_PENDING_SCORE_UPDATES

logger = structlog.get_logger()

_redis_client: aioredis.Redis | None = None

PENDING_SCORES_KEY = "scores:pending"
RECOMPUTE_LOCK_KEY = "scores:recompute-lock"


async def get_redis_client() -> aioredis.Redis | None:
    """Get or create the global async Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        try:
            _redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning("Redis unavailable, caching disabled", error=str(e))
            _redis_client = None
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


class CacheService:
    """Async Redis cache with orjson serialization. No-ops if Redis is unavailable."""

    def __init__(self, client: aioredis.Redis | None, namespace: str = "reco"):
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Any | None:
        if not self.client:
            return None
        try:
            data = await self.client.get(self._key(key))
            if data:
                return orjson.loads(data)
        except Exception as e:
            logger.warning("Cache get failed", key=key, error=str(e))
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        if not self.client:
            return
        try:
            await self.client.set(self._key(key), orjson.dumps(value), ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def delete_prefix(self, prefix: str) -> int:
        """Drop every cached entry whose key starts with ``prefix``."""
        if not self.client:
            return 0
        deleted = 0
        try:
            async for key in self.client.scan_iter(match=f"{self._key(prefix)}*"):
                deleted += await self.client.delete(key)
        except Exception as e:
            logger.warning("Cache prefix delete failed", prefix=prefix, error=str(e))
        return deleted

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except Exception:
            return False


class ScoreUpdateQueue:
    """Bounded Redis set of product ids waiting for a score recompute."""

    def __init__(self, client: aioredis.Redis | None, max_pending: int = MAX_PENDING_SCORE_UPDATES):
        self.client = client
        self.max_pending = max_pending

    async def enqueue(self, product_id: str) -> bool:
        """Queue a product; returns False when the queue is full or Redis is down."""
        if not self.client:
            return False
        try:
            if await self.client.scard(PENDING_SCORES_KEY) >= self.max_pending:
                logger.warning("Score update queue full", product_id=product_id)
                return False
            await self.client.sadd(PENDING_SCORES_KEY, product_id)
            return True
        except Exception as e:
            logger.warning("Score update enqueue failed", product_id=product_id, error=str(e))
            return False

    async def pop_batch(self, size: int) -> list[str]:
        if not self.client:
            return []
        members = await self.client.spop(PENDING_SCORES_KEY, size)
        return [m.decode() if isinstance(m, bytes) else m for m in members or []]

    async def requeue(self, product_ids: list[str]) -> None:
        if self.client and product_ids:
            await self.client.sadd(PENDING_SCORES_KEY, *product_ids)

    async def size(self) -> int:
        if not self.client:
            return 0
        return await self.client.scard(PENDING_SCORES_KEY)


def recompute_lock(client: aioredis.Redis, timeout_seconds: int):
    """Single-writer lock around a full score recompute."""
    return client.lock(RECOMPUTE_LOCK_KEY, timeout=timeout_seconds, blocking=False)
