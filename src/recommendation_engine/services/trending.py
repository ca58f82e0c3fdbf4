"""Trending detection over the recent activity window."""

from datetime import datetime, timedelta, timezone

import structlog

from recommendation_engine.services.types import (
    ActivityStore,
    ProductStore,
    RecommendationCandidate,
    RecommendationReason,
)
from shared.constants import RECENCY_BOOST, TRENDING_DAYS

logger = structlog.get_logger()


class TrendingDetector:
    """Ranks active products by event count within the trending window."""

    def __init__(self, activity: ActivityStore, products: ProductStore):
        self.activity = activity
        self.products = products

    async def trending(
        self, limit: int, offset: int = 0, now: datetime | None = None
    ) -> list[RecommendationCandidate]:
        """
        Get trending products.

        Args:
            limit: Maximum number of candidates
            offset: Number of ranked candidates to skip
            now: Reference time, mainly for tests

        Returns:
            Candidates ordered by recent event count, empty when there is no activity
        """
        if limit <= 0:
            return []
        ranked = await self._ranked(now)
        return ranked[offset : offset + limit]

    async def count(self, now: datetime | None = None) -> int:
        return len(await self._ranked(now))

    async def _ranked(self, now: datetime | None) -> list[RecommendationCandidate]:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=TRENDING_DAYS)

        counts = await self.activity.count_events_by_product(since)
        if not counts:
            return []

        active = {
            p.id: p for p in await self.products.get_products(list(counts)) if p.is_active
        }
        ranked = sorted(
            ((pid, n) for pid, n in counts.items() if pid in active and n > 0),
            key=lambda item: (-item[1], item[0]),
        )
        logger.debug("Trending window aggregated", products=len(ranked), since=since.isoformat())

        return [
            RecommendationCandidate(
                product_id=pid,
                score=n * RECENCY_BOOST,
                reason=RecommendationReason.TRENDING,
                product=active[pid],
            )
            for pid, n in ranked
        ]
