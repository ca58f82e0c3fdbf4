"""Popularity index over the cached product scores."""

from datetime import datetime, timezone
from typing import Any

import structlog

from recommendation_engine.services.scoring import ScoreWeights, calculate_popularity_score
from recommendation_engine.services.types import (
    ProductStore,
    RecommendationCandidate,
    RecommendationReason,
)
from shared.constants import SCORE_RECOMPUTE_BATCH_SIZE

logger = structlog.get_logger()


class PopularityIndex:
    """Ranks active products by their cached popularity score.

    Reads never recompute: stale scores are served until the next explicit
    recompute. Ordering is score desc, then created_at desc, then id asc.
    """

    def __init__(self, products: ProductStore, weights: ScoreWeights | None = None):
        self.products = products
        self.weights = weights or ScoreWeights()

    async def top_popular(self, limit: int, offset: int = 0) -> list[RecommendationCandidate]:
        if limit <= 0:
            return []
        rows = await self.products.list_popular(limit=limit, offset=offset)
        return [
            RecommendationCandidate(
                product_id=p.id,
                score=p.popularity_score or 0.0,
                reason=RecommendationReason.POPULAR,
                product=p,
            )
            for p in rows
            if p.is_active
        ]

    async def count_active(self) -> int:
        return await self.products.count_active()

    async def recompute_one(self, product_id: str, now: datetime | None = None) -> float | None:
        """Recompute and store the score of one product. Returns None if unknown."""
        product = await self.products.get_product(product_id)
        if product is None:
            logger.warning("Score recompute skipped, product not found", product_id=product_id)
            return None

        score = calculate_popularity_score(product.counters, product.created_at, self.weights, now)
        await self.products.update_popularity_score(product.id, score)
        return score

    async def recompute_all(
        self,
        batch_size: int = SCORE_RECOMPUTE_BATCH_SIZE,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Recompute the cached score of every product, walking ids in order.

        Not safe to run concurrently with itself; callers serialize runs
        (the score worker holds a Redis lock for the duration).

        Returns:
            Summary of the run
        """
        now = now or datetime.now(timezone.utc)
        processed = 0
        updated = 0
        after_id: str | None = None

        while True:
            batch = await self.products.list_products_after(after_id, batch_size)
            if not batch:
                break
            for product in batch:
                score = calculate_popularity_score(
                    product.counters, product.created_at, self.weights, now
                )
                processed += 1
                if score != product.popularity_score:
                    await self.products.update_popularity_score(product.id, score)
                    updated += 1
            after_id = batch[-1].id
            if len(batch) < batch_size:
                break

        logger.info("Popularity scores recomputed", processed=processed, updated=updated)
        return {
            "products_processed": processed,
            "scores_updated": updated,
            "completed_at": now.isoformat(),
        }
