"""Domain types and store interfaces for the recommendation services.

The catalog, order, activity and interest stores are external collaborators;
the services only depend on the read operations declared here.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class RecommendationReason(str, Enum):
    """Which source produced a candidate."""

    SIMILAR = "similar"
    PERSONALIZED = "personalized"
    TRENDING = "trending"
    POPULAR = "popular"


class FeedKind(str, Enum):
    """Independently paginated homepage sections."""

    TRENDING = "trending"
    POPULAR = "popular"
    PERSONALIZED = "personalized"


class ActivityKind(str, Enum):
    """Types of tracked activity events."""

    VIEW = "view"
    CART_ADD = "cart_add"
    PURCHASE = "purchase"


@dataclass(frozen=True)
class ProductCounters:
    """Behavioral counters kept on a product."""

    view_count: int = 0
    cart_add_count: int = 0
    purchase_count: int = 0


@dataclass(frozen=True)
class Product:
    """Catalog product as seen by the recommender."""

    id: str
    category_id: str | None
    price: float
    is_active: bool
    created_at: datetime
    counters: ProductCounters = field(default_factory=ProductCounters)
    popularity_score: float = 0.0
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "price": self.price,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "view_count": self.counters.view_count,
            "cart_add_count": self.counters.cart_add_count,
            "purchase_count": self.counters.purchase_count,
            "popularity_score": self.popularity_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            category_id=data.get("category_id"),
            price=float(data.get("price") or 0.0),
            is_active=bool(data.get("is_active")),
            created_at=datetime.fromisoformat(data["created_at"]),
            counters=ProductCounters(
                view_count=data.get("view_count") or 0,
                cart_add_count=data.get("cart_add_count") or 0,
                purchase_count=data.get("purchase_count") or 0,
            ),
            popularity_score=float(data.get("popularity_score") or 0.0),
        )


@dataclass(frozen=True)
class ActivityEvent:
    """Immutable user activity event."""

    product_id: str
    kind: ActivityKind
    created_at: datetime
    user_id: str | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class UserInterest:
    """Category affinity of a user, maintained by an external pipeline."""

    user_id: str
    category_id: str
    affinity_score: float


@dataclass(frozen=True)
class RecommendationCandidate:
    """A scored product suggestion, built per request and never persisted."""

    product_id: str
    score: float
    reason: RecommendationReason
    product: Product | None = None

    def relabel(self, reason: RecommendationReason) -> "RecommendationCandidate":
        return replace(self, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "score": self.score,
            "reason": self.reason.value,
            "product": self.product.to_dict() if self.product else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecommendationCandidate":
        product = data.get("product")
        return cls(
            product_id=data["product_id"],
            score=float(data.get("score") or 0.0),
            reason=RecommendationReason(data["reason"]),
            product=Product.from_dict(product) if product else None,
        )


@dataclass(frozen=True)
class FeedPage:
    """One page of a paginated feed."""

    items: list[RecommendationCandidate]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


class ProductStore(Protocol):
    """Read access to the catalog plus write-back of the cached score."""

    async def get_product(self, product_id: str) -> Product | None: ...

    async def get_products(self, product_ids: list[str]) -> list[Product]: ...

    async def list_popular(self, limit: int, offset: int = 0) -> list[Product]: ...

    async def count_active(self) -> int: ...

    async def list_active_in_categories(
        self, category_ids: list[str], exclude_ids: set[str], limit: int
    ) -> list[Product]: ...

    async def list_in_price_band(
        self,
        category_id: str | None,
        min_price: float,
        max_price: float,
        exclude_id: str,
        limit: int,
    ) -> list[Product]: ...

    async def list_products_after(self, after_id: str | None, limit: int) -> list[Product]: ...

    async def update_popularity_score(self, product_id: str, score: float) -> None: ...


class ActivityStore(Protocol):
    """Read access to the append-only activity log."""

    async def count_events_by_product(self, since: datetime) -> dict[str, int]: ...


class InterestStore(Protocol):
    """Read access to user category affinities."""

    async def get_interests(self, user_id: str) -> list[UserInterest]: ...


class OrderStore(Protocol):
    """Read access to order history."""

    async def get_purchased_product_ids(self, user_id: str) -> set[str]: ...
