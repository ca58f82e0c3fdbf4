"""Category-affinity personalization."""

import structlog

from recommendation_engine.services.popularity import PopularityIndex
from recommendation_engine.services.scoring import ScoreWeights, calculate_popularity_score
from recommendation_engine.services.types import (
    InterestStore,
    OrderStore,
    ProductStore,
    RecommendationCandidate,
    RecommendationReason,
    UserInterest,
)
from shared.constants import AFFINITY_SCALE, PERSONALIZATION_OVERSAMPLE

logger = structlog.get_logger()


def interest_multiplier(interest: UserInterest | None) -> float:
    """max(1, affinity / 100); no matching interest means 1."""
    if interest is None:
        return 1.0
    return max(1.0, (interest.affinity_score or 0.0) / AFFINITY_SCALE)


class PersonalizationEngine:
    """Scores products in a user's interested categories, excluding purchases."""

    def __init__(
        self,
        products: ProductStore,
        interests: InterestStore,
        orders: OrderStore,
        popularity: PopularityIndex,
        weights: ScoreWeights | None = None,
    ):
        self.products = products
        self.interests = interests
        self.orders = orders
        self.popularity = popularity
        self.weights = weights or ScoreWeights()

    async def personalized(self, user_id: str, limit: int) -> list[RecommendationCandidate]:
        """
        Get personalized recommendations for a user.

        Algorithm:
        1. Load interests by affinity; cold-start users get popular products
        2. Exclude already purchased products
        3. Oversample active products from the interested categories
        4. Score with live counters times the interest multiplier
        5. Sort and truncate

        Args:
            user_id: The user's ID
            limit: Maximum number of recommendations

        Returns:
            Candidates labelled ``personalized``
        """
        if limit <= 0:
            return []

        interests = await self.interests.get_interests(user_id)
        if not interests:
            logger.info("No interests for user, using popular products", user_id=user_id)
            popular = await self.popularity.top_popular(limit)
            return [c.relabel(RecommendationReason.PERSONALIZED) for c in popular]

        purchased = await self.orders.get_purchased_product_ids(user_id)

        by_category: dict[str, UserInterest] = {}
        for interest in sorted(interests, key=lambda i: i.affinity_score, reverse=True):
            by_category.setdefault(interest.category_id, interest)

        pool = await self.products.list_active_in_categories(
            category_ids=list(by_category),
            exclude_ids=purchased,
            limit=limit * PERSONALIZATION_OVERSAMPLE,
        )

        scored = []
        for product in pool:
            if product.id in purchased or not product.is_active:
                continue
            base = calculate_popularity_score(product.counters, product.created_at, self.weights)
            multiplier = interest_multiplier(by_category.get(product.category_id or ""))
            scored.append(
                RecommendationCandidate(
                    product_id=product.id,
                    score=base * multiplier,
                    reason=RecommendationReason.PERSONALIZED,
                    product=product,
                )
            )

        scored.sort(key=lambda c: (-c.score, c.product_id))
        return scored[:limit]
