"""Price-banded, same-category similarity."""

import structlog

from recommendation_engine.services.types import (
    Product,
    ProductStore,
    RecommendationCandidate,
    RecommendationReason,
)
from shared.constants import SIMILARITY_BAND_HIGH, SIMILARITY_BAND_LOW
from shared.exceptions import NotFoundError

logger = structlog.get_logger()


def price_band(price: float) -> tuple[float, float]:
    return price * SIMILARITY_BAND_LOW, price * SIMILARITY_BAND_HIGH


class SimilarityMatcher:
    """Finds alternatives in the anchor's category within +/-30% of its price."""

    def __init__(self, products: ProductStore):
        self.products = products

    async def similar(self, anchor_id: str, limit: int) -> list[RecommendationCandidate]:
        """Similar products, or an empty list when the anchor is unusable."""
        anchor = await self.products.get_product(anchor_id)
        return await self._similar_to(anchor, limit)

    async def similar_or_raise(self, anchor_id: str, limit: int) -> list[RecommendationCandidate]:
        """Same as ``similar`` but an unknown anchor raises NotFoundError."""
        anchor = await self.products.get_product(anchor_id)
        if anchor is None:
            raise NotFoundError("Product", anchor_id)
        return await self._similar_to(anchor, limit)

    async def _similar_to(
        self, anchor: Product | None, limit: int
    ) -> list[RecommendationCandidate]:
        if limit <= 0 or anchor is None:
            return []
        if not anchor.is_active or not anchor.price or anchor.price <= 0:
            logger.info("Anchor not eligible for similarity", product_id=anchor.id)
            return []

        low, high = price_band(anchor.price)
        rows = await self.products.list_in_price_band(
            category_id=anchor.category_id,
            min_price=low,
            max_price=high,
            exclude_id=anchor.id,
            limit=limit,
        )

        return [
            RecommendationCandidate(
                product_id=p.id,
                score=p.popularity_score or 0.0,
                reason=RecommendationReason.SIMILAR,
                product=p,
            )
            for p in rows
            if p.id != anchor.id
            and p.is_active
            and p.category_id == anchor.category_id
            and low <= p.price <= high
        ][:limit]
