"""Recommendation aggregator: homepage sections, paginated feeds and the mixed feed."""

from dataclasses import replace

import structlog

from recommendation_engine.config import Settings, get_settings
from recommendation_engine.infrastructure.redis import CacheService
from recommendation_engine.services.personalization import PersonalizationEngine
from recommendation_engine.services.popularity import PopularityIndex
from recommendation_engine.services.scoring import ScoreWeights
from recommendation_engine.services.similarity import SimilarityMatcher
from recommendation_engine.services.trending import TrendingDetector
from recommendation_engine.services.types import (
    ActivityStore,
    FeedKind,
    FeedPage,
    InterestStore,
    OrderStore,
    ProductStore,
    RecommendationCandidate,
    RecommendationReason,
)
from shared.constants import GUEST_ACTOR_ID, MIXED_SOURCE_WEIGHTS, REASON_PRIORITY
from shared.exceptions import ValidationError
from shared.metrics import MetricsSink, NullMetricsSink

logger = structlog.get_logger()

_PRIORITY_RANK = {RecommendationReason(r): i for i, r in enumerate(REASON_PRIORITY)}


def is_authenticated(actor_id: str | None) -> bool:
    return bool(actor_id) and actor_id != GUEST_ACTOR_ID


def merge_tagged_sources(
    sources: dict[RecommendationReason, list[RecommendationCandidate]],
    exclude_ids: set[str] | None = None,
) -> list[RecommendationCandidate]:
    """
    Merge candidate lists from several sources into one deduplicated ranking.

    Sources are visited in priority order (similar > personalized > trending
    > popular), so a product found by several sources keeps the reason of the
    highest-priority one. Each source's scores are normalised by that source's
    maximum and weighted per source before the final sort.
    """
    exclude_ids = exclude_ids or set()
    kept: dict[str, RecommendationCandidate] = {}

    for reason in sorted(sources, key=_PRIORITY_RANK.__getitem__):
        candidates = sources[reason]
        if not candidates:
            continue
        max_score = max(max(c.score, 0.0) for c in candidates) or 1.0
        weight = MIXED_SOURCE_WEIGHTS[reason.value]
        for c in candidates:
            if c.product_id in exclude_ids or c.product_id in kept:
                continue
            kept[c.product_id] = replace(
                c,
                reason=reason,
                score=round(weight * max(c.score, 0.0) / max_score, 6),
            )

    return sorted(
        kept.values(),
        key=lambda c: (-c.score, _PRIORITY_RANK[c.reason], c.product_id),
    )


class RecommendationAggregator:
    """Composes the ranking components into delivery feeds."""

    def __init__(
        self,
        popularity: PopularityIndex,
        trending: TrendingDetector,
        personalization: PersonalizationEngine,
        similarity: SimilarityMatcher,
        cache: CacheService | None = None,
        metrics: MetricsSink | None = None,
        settings: Settings | None = None,
    ):
        self.popularity = popularity
        self.trending_detector = trending
        self.personalization = personalization
        self.similarity = similarity
        self.cache = cache
        self.metrics = metrics or NullMetricsSink()
        self.settings = settings or get_settings()

    @classmethod
    def from_stores(
        cls,
        products: ProductStore,
        activity: ActivityStore,
        interests: InterestStore,
        orders: OrderStore,
        cache: CacheService | None = None,
        metrics: MetricsSink | None = None,
        settings: Settings | None = None,
    ) -> "RecommendationAggregator":
        settings = settings or get_settings()
        weights = ScoreWeights.from_settings(settings)
        popularity = PopularityIndex(products, weights)
        return cls(
            popularity=popularity,
            trending=TrendingDetector(activity, products),
            personalization=PersonalizationEngine(
                products, interests, orders, popularity, weights
            ),
            similarity=SimilarityMatcher(products),
            cache=cache,
            metrics=metrics,
            settings=settings,
        )

    # ==========================================================================
    # Sectioned feeds
    # ==========================================================================

    async def sections(
        self,
        actor_id: str,
        personalized_limit: int,
        popular_limit: int,
        trending_limit: int,
    ) -> dict[str, list[RecommendationCandidate]]:
        """Independently computed homepage sections; no cross-section dedup."""
        for name, value in (
            ("personalized_limit", personalized_limit),
            ("popular_limit", popular_limit),
            ("trending_limit", trending_limit),
        ):
            self._validate_limit(value, name)

        popular = await self._popular(popular_limit, 0)
        trending = await self._trending(trending_limit, 0)

        if is_authenticated(actor_id):
            personalized = await self.personalization.personalized(actor_id, personalized_limit)
        else:
            source = popular
            if personalized_limit > popular_limit:
                source = await self._popular(personalized_limit, 0)
            personalized = [
                c.relabel(RecommendationReason.PERSONALIZED) for c in source[:personalized_limit]
            ]

        self.metrics.increment("recommendations.sections_served")
        return {"personalized": personalized, "popular": popular, "trending": trending}

    async def feed(self, actor_id: str, kind: FeedKind, page: int, limit: int) -> FeedPage:
        """One page of a single section."""
        self._validate_page(page, limit)
        kind = FeedKind(kind)
        offset = (page - 1) * limit

        if kind == FeedKind.POPULAR:
            return await self.popular_feed(page, limit)

        if kind == FeedKind.PERSONALIZED and not is_authenticated(actor_id):
            popular = await self.popular_feed(page, limit)
            return replace(
                popular,
                items=[c.relabel(RecommendationReason.PERSONALIZED) for c in popular.items],
            )

        window = self.settings.feed_window_size
        if kind == FeedKind.TRENDING:
            ranked = await self._trending(window, 0)
        else:
            ranked = await self.personalization.personalized(actor_id, window)

        self.metrics.increment("recommendations.feed_served", kind=kind.value)
        return FeedPage(
            items=ranked[offset : offset + limit],
            page=page,
            limit=limit,
            total=len(ranked),
        )

    async def popular_feed(self, page: int, limit: int) -> FeedPage:
        """Generic popular feed, also the fallback for every other feed."""
        self._validate_page(page, limit)
        offset = (page - 1) * limit
        items = await self._popular(limit, offset)
        total = await self.popularity.count_active()
        self.metrics.increment("recommendations.feed_served", kind=FeedKind.POPULAR.value)
        return FeedPage(items=items, page=page, limit=limit, total=total)

    # ==========================================================================
    # Mixed feed
    # ==========================================================================

    async def mixed(
        self,
        anchor_id: str,
        actor_id: str | None,
        limit: int,
        offset: int = 0,
    ) -> list[RecommendationCandidate]:
        """
        Product-detail "you may also like" feed.

        Args:
            anchor_id: Product being viewed (never recommended back)
            actor_id: Authenticated user id or "guest"
            limit: Page size
            offset: Number of merged candidates to skip

        Returns:
            Deduplicated candidates; an empty first page falls back to popular
        """
        if not anchor_id:
            raise ValidationError("Product id is required")
        self._validate_limit(limit)
        if offset < 0:
            raise ValidationError("offset must be >= 0", details={"offset": offset})

        depth = min(offset + limit, self.settings.feed_window_size)
        sources: dict[RecommendationReason, list[RecommendationCandidate]] = {
            RecommendationReason.SIMILAR: await self.similarity.similar(anchor_id, depth),
        }
        if is_authenticated(actor_id):
            sources[RecommendationReason.PERSONALIZED] = (
                await self.personalization.personalized(actor_id, depth)
            )
        sources[RecommendationReason.TRENDING] = await self._trending(depth, 0)
        sources[RecommendationReason.POPULAR] = await self._popular(depth, 0)

        merged = merge_tagged_sources(sources, exclude_ids={anchor_id})
        page = merged[offset : offset + limit]

        if not page and offset == 0:
            logger.info("Mixed feed empty, serving popular", product_id=anchor_id)
            self.metrics.increment("recommendations.fallback", feed="mixed")
            popular = await self._popular(limit + 1, 0)
            page = [c for c in popular if c.product_id != anchor_id][:limit]

        self.metrics.increment("recommendations.feed_served", kind="mixed")
        return page

    async def similar(self, anchor_id: str, limit: int) -> list[RecommendationCandidate]:
        self._validate_limit(limit)
        return await self.similarity.similar_or_raise(anchor_id, limit)

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    async def _popular(self, limit: int, offset: int) -> list[RecommendationCandidate]:
        """Popular candidates (cached)."""
        return await self._cached(
            f"popular:{limit}:{offset}",
            self.settings.popular_cache_ttl_seconds,
            lambda: self.popularity.top_popular(limit, offset),
        )

    async def _trending(self, limit: int, offset: int) -> list[RecommendationCandidate]:
        """Trending candidates (cached)."""
        return await self._cached(
            f"trending:{limit}:{offset}",
            self.settings.trending_cache_ttl_seconds,
            lambda: self.trending_detector.trending(limit, offset),
        )

    async def _cached(self, key, ttl_seconds: int, compute) -> list[RecommendationCandidate]:
        if self.cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return [RecommendationCandidate.from_dict(c) for c in cached]

        candidates = await compute()

        if self.cache and candidates:
            await self.cache.set(key, [c.to_dict() for c in candidates], ttl_seconds=ttl_seconds)
        return candidates

    def _validate_limit(self, limit: int, name: str = "limit") -> None:
        if limit < 1 or limit > self.settings.max_recommendation_limit:
            raise ValidationError(
                f"{name} must be between 1 and {self.settings.max_recommendation_limit}",
                details={name: limit},
            )

    def _validate_page(self, page: int, limit: int) -> None:
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})
        self._validate_limit(limit)
