"""Product-detail recommendation endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from recommendation_engine.api.dependencies import get_aggregator
from recommendation_engine.api.v1.schemas import FeedResponse, MixedResponse, RecommendedProduct
from recommendation_engine.services.aggregator import RecommendationAggregator
from recommendation_engine.services.types import FeedPage
from shared.constants import DEFAULT_MIXED_LIMIT, GUEST_ACTOR_ID, MAX_RECOMMENDATION_LIMIT

router = APIRouter()

ProductId = Annotated[str, Path(min_length=1, max_length=255)]


@router.get("/{product_id}/mixed-recommendations", response_model=MixedResponse)
async def get_mixed_recommendations(
    product_id: ProductId,
    actor_id: Annotated[str, Query(description="User id or 'guest'")] = GUEST_ACTOR_ID,
    limit: Annotated[int, Query(ge=1, le=MAX_RECOMMENDATION_LIMIT)] = DEFAULT_MIXED_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
    aggregator: RecommendationAggregator = Depends(get_aggregator),
) -> MixedResponse:
    """
    "You may also like" feed for a product page.

    **Algorithm:**
    1. Collect similar, trending, popular and (signed-in only) personalized candidates
    2. Deduplicate by product, keeping the highest-priority reason
       (similar > personalized > trending > popular)
    3. Rank by per-source normalised score
    4. Serve popular products if the first page comes back empty
    """
    items = await aggregator.mixed(product_id, actor_id, limit=limit, offset=offset)
    return MixedResponse(
        data=[RecommendedProduct.from_candidate(c) for c in items],
        count=len(items),
    )


@router.get("/{product_id}/similar", response_model=FeedResponse)
async def get_similar_products(
    product_id: ProductId,
    limit: Annotated[int, Query(ge=1, le=MAX_RECOMMENDATION_LIMIT)] = DEFAULT_MIXED_LIMIT,
    aggregator: RecommendationAggregator = Depends(get_aggregator),
) -> FeedResponse:
    """Same-category products within +/-30% of the product's price. 404 for unknown products."""
    items = await aggregator.similar(product_id, limit)
    return FeedResponse.from_page(FeedPage(items=items, page=1, limit=limit, total=len(items)))
