"""Popularity score maintenance endpoints."""

from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from recommendation_engine.api.dependencies import get_cache, get_popularity_index, get_score_queue
from recommendation_engine.infrastructure.redis import CacheService, ScoreUpdateQueue
from recommendation_engine.services.popularity import PopularityIndex
from shared.exceptions import NotFoundError, UpstreamError

logger = structlog.get_logger()

router = APIRouter()

ProductId = Annotated[str, Path(min_length=1, max_length=255)]


class RecomputeEnqueuedResponse(BaseModel):
    success: bool
    task_id: str
    queued_at: str


class ProductScoreResponse(BaseModel):
    success: bool
    product_id: str
    popularity_score: float


class QueuedScoreResponse(BaseModel):
    success: bool
    product_id: str
    queued: bool


@router.post("/recompute", response_model=RecomputeEnqueuedResponse)
async def enqueue_full_recompute() -> RecomputeEnqueuedResponse:
    """
    Schedule a full popularity score recompute on the score worker.

    The worker holds a single-writer lock, so repeated calls while a run is
    in progress are skipped rather than racing.
    """
    from score_worker.tasks.recompute_scores import recompute_all_scores

    try:
        result = recompute_all_scores.delay()
    except Exception as e:
        logger.error("Failed to enqueue score recompute", error=str(e))
        raise UpstreamError("Score worker unavailable", details={"error": str(e)}) from e

    return RecomputeEnqueuedResponse(
        success=True,
        task_id=str(result.id),
        queued_at=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/{product_id}/recompute", response_model=ProductScoreResponse)
async def recompute_product_score(
    product_id: ProductId,
    index: PopularityIndex = Depends(get_popularity_index),
    cache: CacheService = Depends(get_cache),
) -> ProductScoreResponse:
    """Recompute one product's cached score immediately."""
    score = await index.recompute_one(product_id)
    if score is None:
        raise NotFoundError("Product", product_id)
    await cache.delete_prefix("popular:")
    return ProductScoreResponse(success=True, product_id=product_id, popularity_score=score)


@router.post("/{product_id}/queue", response_model=QueuedScoreResponse)
async def queue_product_score(
    product_id: ProductId,
    queue: ScoreUpdateQueue = Depends(get_score_queue),
) -> QueuedScoreResponse:
    """Queue a product for the next batched recompute after user activity."""
    queued = await queue.enqueue(product_id)
    return QueuedScoreResponse(success=True, product_id=product_id, queued=queued)
