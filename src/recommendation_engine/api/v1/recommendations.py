"""Recommendation feed endpoints."""

from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path, Query

from recommendation_engine.api.dependencies import get_aggregator
from recommendation_engine.api.v1.schemas import (
    FeedResponse,
    RecommendedProduct,
    SectionsResponse,
)
from recommendation_engine.services.aggregator import RecommendationAggregator
from recommendation_engine.services.types import FeedKind
from shared.constants import DEFAULT_RECOMMENDATION_LIMIT, MAX_RECOMMENDATION_LIMIT

logger = structlog.get_logger()

router = APIRouter()

ActorId = Annotated[str, Path(min_length=1, max_length=255, description="User id or 'guest'")]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=MAX_RECOMMENDATION_LIMIT)]


@router.get("/guest/popular", response_model=FeedResponse)
async def get_guest_popular(
    page: Page = 1,
    limit: Limit = DEFAULT_RECOMMENDATION_LIMIT,
    aggregator: RecommendationAggregator = Depends(get_aggregator),
) -> FeedResponse:
    """
    Generic popular feed.

    Serves anonymous visitors and is the fallback target of every other feed,
    both for server cold start and for the client fallback cascade.
    """
    return FeedResponse.from_page(await aggregator.popular_feed(page, limit))


@router.get("/{actor_id}", response_model=SectionsResponse)
async def get_sections(
    actor_id: ActorId,
    personalized_limit: Limit = DEFAULT_RECOMMENDATION_LIMIT,
    popular_limit: Limit = DEFAULT_RECOMMENDATION_LIMIT,
    trending_limit: Limit = DEFAULT_RECOMMENDATION_LIMIT,
    aggregator: RecommendationAggregator = Depends(get_aggregator),
) -> SectionsResponse:
    """
    Homepage sections for an actor.

    Sections are computed and paginated independently; a product may appear
    in more than one section. Guests get popular products in the
    personalized slot.
    """
    sections = await aggregator.sections(
        actor_id,
        personalized_limit=personalized_limit,
        popular_limit=popular_limit,
        trending_limit=trending_limit,
    )
    return SectionsResponse(
        actor_id=actor_id,
        personalized=[RecommendedProduct.from_candidate(c) for c in sections["personalized"]],
        popular=[RecommendedProduct.from_candidate(c) for c in sections["popular"]],
        trending=[RecommendedProduct.from_candidate(c) for c in sections["trending"]],
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/{actor_id}/{kind}", response_model=FeedResponse)
async def get_feed(
    actor_id: ActorId,
    kind: FeedKind,
    page: Page = 1,
    limit: Limit = DEFAULT_RECOMMENDATION_LIMIT,
    aggregator: RecommendationAggregator = Depends(get_aggregator),
) -> FeedResponse:
    """One page of the trending, popular or personalized feed."""
    feed = await aggregator.feed(actor_id, kind, page, limit)
    logger.debug("Feed served", actor_id=actor_id, kind=kind.value, page=page, count=len(feed.items))
    return FeedResponse.from_page(feed)
