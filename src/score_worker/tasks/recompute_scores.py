"""Popularity score recomputation tasks."""

import asyncio
from typing import Any, Awaitable, Callable

import structlog
from celery import shared_task
from redis.exceptions import LockError

from recommendation_engine.config import get_settings
from recommendation_engine.infrastructure.database.connection import close_db, get_db_session
from recommendation_engine.infrastructure.database.repositories import SqlProductStore
from recommendation_engine.infrastructure.redis import (
    CacheService,
    ScoreUpdateQueue,
    close_redis,
    get_redis_client,
    recompute_lock,
)
from recommendation_engine.services.popularity import PopularityIndex
from recommendation_engine.services.scoring import ScoreWeights
from shared.constants import PENDING_SCORE_BATCH_SIZE, SCORE_RECOMPUTE_BATCH_SIZE

logger = structlog.get_logger()


def _run(factory: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    """Run a coroutine on a fresh loop; pooled clients are bound to that loop."""

    async def runner() -> dict[str, Any]:
        try:
            return await factory()
        finally:
            await close_redis()
            await close_db()

    return asyncio.run(runner())


async def recompute_products(index: PopularityIndex, product_ids: list[str]) -> dict[str, Any]:
    """Recompute each product independently; one failure does not stop the batch."""
    updated: dict[str, float] = {}
    missing: list[str] = []
    failed: list[str] = []

    for product_id in product_ids:
        try:
            score = await index.recompute_one(product_id)
        except Exception as e:
            logger.error("Score recompute failed", product_id=product_id, error=str(e))
            failed.append(product_id)
            continue
        if score is None:
            missing.append(product_id)
        else:
            updated[product_id] = score

    return {"updated": updated, "missing": missing, "failed": failed}


async def _recompute_all() -> dict[str, Any]:
    settings = get_settings()
    client = await get_redis_client()
    if client is None:
        logger.error("Redis unavailable, refusing unguarded full recompute")
        return {"skipped": True, "reason": "lock unavailable"}

    lock = recompute_lock(client, settings.score_lock_timeout_seconds)
    if not await lock.acquire():
        logger.info("Full recompute already running, skipping")
        return {"skipped": True, "reason": "recompute already running"}

    try:
        async with get_db_session() as session:
            index = PopularityIndex(SqlProductStore(session), ScoreWeights.from_settings(settings))
            summary = await index.recompute_all(batch_size=SCORE_RECOMPUTE_BATCH_SIZE)
        await CacheService(client).delete_prefix("popular:")
        return summary
    finally:
        try:
            await lock.release()
        except LockError:
            logger.warning("Recompute lock expired before release")


async def _recompute_products(product_ids: list[str]) -> dict[str, Any]:
    settings = get_settings()
    async with get_db_session() as session:
        index = PopularityIndex(SqlProductStore(session), ScoreWeights.from_settings(settings))
        result = await recompute_products(index, product_ids)
    await CacheService(await get_redis_client()).delete_prefix("popular:")
    return result


async def _drain_pending(batch_size: int) -> dict[str, Any]:
    queue = ScoreUpdateQueue(await get_redis_client())
    product_ids = await queue.pop_batch(batch_size)
    if not product_ids:
        return {"updated": {}, "missing": [], "failed": [], "remaining": 0}

    result = await _recompute_products(product_ids)
    # Failed ids go back for the next drain
    await queue.requeue(result["failed"])
    result["remaining"] = await queue.size()
    return result


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def recompute_all_scores(self) -> dict:
    """
    Recompute the cached popularity score of every product.

    Runs as a single writer: a Redis lock makes overlapping runs skip instead
    of racing on the same rows.

    Returns:
        dict: Summary of the run
    """
    logger.info("Starting full popularity score recompute")
    try:
        return _run(_recompute_all)
    except Exception as e:
        logger.error("Full score recompute failed", error=str(e))
        raise self.retry(exc=e)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def recompute_product_scores(self, product_ids: list[str]) -> dict:
    """
    Recompute the scores of specific products.

    Args:
        product_ids: Products whose counters changed

    Returns:
        dict: Updated scores, unknown ids and failed ids
    """
    logger.info("Recomputing product scores", count=len(product_ids))
    return _run(lambda: _recompute_products(product_ids))


@shared_task(bind=True)
def drain_pending_scores(self, batch_size: int = PENDING_SCORE_BATCH_SIZE) -> dict:
    """Recompute a batch of products queued after user activity."""
    return _run(lambda: _drain_pending(batch_size))
