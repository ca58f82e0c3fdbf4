"""Response models shared by the recommendation endpoints."""

from pydantic import BaseModel, Field

from recommendation_engine.services.types import FeedPage, RecommendationCandidate


class ProductPayload(BaseModel):
    """Product fields exposed alongside a recommendation."""

    id: str
    name: str
    category_id: str | None = None
    price: float
    is_active: bool
    created_at: str
    view_count: int = 0
    cart_add_count: int = 0
    purchase_count: int = 0
    popularity_score: float = 0.0


class RecommendedProduct(BaseModel):
    """A recommended product with its score and source."""

    product_id: str
    score: float = Field(..., description="Source-specific ranking score")
    reason: str = Field(..., description="popular | trending | personalized | similar")
    product: ProductPayload | None = None

    @classmethod
    def from_candidate(cls, candidate: RecommendationCandidate) -> "RecommendedProduct":
        return cls(**candidate.to_dict())


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SectionsResponse(BaseModel):
    """Independently computed homepage sections."""

    actor_id: str
    personalized: list[RecommendedProduct]
    popular: list[RecommendedProduct]
    trending: list[RecommendedProduct]
    generated_at: str


class FeedResponse(BaseModel):
    """One page of a single feed."""

    success: bool = True
    data: list[RecommendedProduct]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: FeedPage) -> "FeedResponse":
        return cls(
            data=[RecommendedProduct.from_candidate(c) for c in page.items],
            pagination=Pagination(
                page=page.page,
                limit=page.limit,
                total=page.total,
                total_pages=page.total_pages,
            ),
        )


class MixedResponse(BaseModel):
    """Merged product-detail feed."""

    success: bool = True
    data: list[RecommendedProduct]
    count: int
