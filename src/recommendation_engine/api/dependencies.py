"""FastAPI dependencies wiring stores, cache and metrics into the services."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from recommendation_engine.config import Settings, get_settings
from recommendation_engine.infrastructure.database.connection import get_session
from recommendation_engine.infrastructure.database.repositories import (
    SqlActivityStore,
    SqlInterestStore,
    SqlOrderStore,
    SqlProductStore,
)
from recommendation_engine.infrastructure.redis import (
    CacheService,
    ScoreUpdateQueue,
    get_redis_client,
)
from recommendation_engine.services.aggregator import RecommendationAggregator
from recommendation_engine.services.popularity import PopularityIndex
from recommendation_engine.services.scoring import ScoreWeights
from shared.metrics import MetricsSink, NullMetricsSink


def get_metrics(request: Request) -> MetricsSink:
    return getattr(request.app.state, "metrics", None) or NullMetricsSink()


async def get_cache() -> CacheService:
    return CacheService(await get_redis_client())


async def get_score_queue() -> ScoreUpdateQueue:
    return ScoreUpdateQueue(await get_redis_client())


async def get_aggregator(
    session: AsyncSession = Depends(get_session),
    cache: CacheService = Depends(get_cache),
    metrics: MetricsSink = Depends(get_metrics),
    settings: Settings = Depends(get_settings),
) -> RecommendationAggregator:
    return RecommendationAggregator.from_stores(
        products=SqlProductStore(session),
        activity=SqlActivityStore(session),
        interests=SqlInterestStore(session),
        orders=SqlOrderStore(session),
        cache=cache,
        metrics=metrics,
        settings=settings,
    )


async def get_popularity_index(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> PopularityIndex:
    return PopularityIndex(SqlProductStore(session), ScoreWeights.from_settings(settings))
