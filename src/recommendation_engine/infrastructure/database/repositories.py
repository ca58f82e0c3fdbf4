"""SQL-backed store implementations."""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recommendation_engine.infrastructure.database.models import (
    OrderItemRow,
    OrderRow,
    ProductRow,
    UserActivityRow,
    UserInterestRow,
)
from recommendation_engine.services.types import Product, ProductCounters, UserInterest


def _to_product(row: ProductRow) -> Product:
    return Product(
        id=str(row.id),
        name=row.name or "",
        category_id=row.category_id,
        price=float(row.base_price or 0),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        counters=ProductCounters(
            view_count=row.view_count or 0,
            cart_add_count=row.cart_add_count or 0,
            purchase_count=row.purchase_count or 0,
        ),
        popularity_score=float(row.popularity_score or 0),
    )


class SqlProductStore:
    """Catalog reads and score write-back."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_product(self, product_id: str) -> Product | None:
        row = await self.session.get(ProductRow, product_id)
        return _to_product(row) if row else None

    async def get_products(self, product_ids: list[str]) -> list[Product]:
        if not product_ids:
            return []
        result = await self.session.execute(
            select(ProductRow).where(ProductRow.id.in_(product_ids))
        )
        return [_to_product(r) for r in result.scalars()]

    async def list_popular(self, limit: int, offset: int = 0) -> list[Product]:
        result = await self.session.execute(
            select(ProductRow)
            .where(ProductRow.is_active.is_(True))
            .order_by(
                ProductRow.popularity_score.desc().nulls_last(),
                ProductRow.created_at.desc(),
                ProductRow.id,
            )
            .limit(limit)
            .offset(offset)
        )
        return [_to_product(r) for r in result.scalars()]

    async def count_active(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(ProductRow).where(ProductRow.is_active.is_(True))
        )
        return result.scalar() or 0

    async def list_active_in_categories(
        self, category_ids: list[str], exclude_ids: set[str], limit: int
    ) -> list[Product]:
        if not category_ids:
            return []
        query = select(ProductRow).where(
            ProductRow.is_active.is_(True),
            ProductRow.category_id.in_(category_ids),
        )
        if exclude_ids:
            query = query.where(ProductRow.id.not_in(exclude_ids))
        result = await self.session.execute(
            query.order_by(ProductRow.popularity_score.desc().nulls_last(), ProductRow.id).limit(limit)
        )
        return [_to_product(r) for r in result.scalars()]

    async def list_in_price_band(
        self,
        category_id: str | None,
        min_price: float,
        max_price: float,
        exclude_id: str,
        limit: int,
    ) -> list[Product]:
        category_filter = (
            ProductRow.category_id.is_(None)
            if category_id is None
            else ProductRow.category_id == category_id
        )
        result = await self.session.execute(
            select(ProductRow)
            .where(
                category_filter,
                ProductRow.id != exclude_id,
                ProductRow.is_active.is_(True),
                ProductRow.base_price >= min_price,
                ProductRow.base_price <= max_price,
            )
            .order_by(
                ProductRow.popularity_score.desc().nulls_last(),
                ProductRow.created_at.desc(),
                ProductRow.id,
            )
            .limit(limit)
        )
        return [_to_product(r) for r in result.scalars()]

    async def list_products_after(self, after_id: str | None, limit: int) -> list[Product]:
        query = select(ProductRow)
        if after_id is not None:
            query = query.where(ProductRow.id > after_id)
        result = await self.session.execute(query.order_by(ProductRow.id).limit(limit))
        return [_to_product(r) for r in result.scalars()]

    async def update_popularity_score(self, product_id: str, score: float) -> None:
        await self.session.execute(
            update(ProductRow)
            .where(ProductRow.id == product_id)
            .values(popularity_score=score)
        )


class SqlActivityStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_events_by_product(self, since: datetime) -> dict[str, int]:
        # Timestamps are stored naive in UTC
        if since.tzinfo is not None:
            since = since.replace(tzinfo=None)
        result = await self.session.execute(
            select(UserActivityRow.product_id, func.count().label("event_count"))
            .where(
                UserActivityRow.created_at >= since,
                UserActivityRow.product_id.is_not(None),
            )
            .group_by(UserActivityRow.product_id)
        )
        return {str(row.product_id): int(row.event_count) for row in result}


class SqlInterestStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_interests(self, user_id: str) -> list[UserInterest]:
        result = await self.session.execute(
            select(UserInterestRow)
            .where(UserInterestRow.user_id == user_id)
            .order_by(UserInterestRow.score.desc())
        )
        return [
            UserInterest(
                user_id=row.user_id,
                category_id=row.category_id,
                affinity_score=float(row.score or 0),
            )
            for row in result.scalars()
        ]


class SqlOrderStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_purchased_product_ids(self, user_id: str) -> set[str]:
        result = await self.session.execute(
            select(OrderItemRow.product_id)
            .join(OrderRow, OrderItemRow.order_id == OrderRow.id)
            .where(OrderRow.user_id == user_id)
            .distinct()
        )
        return {str(pid) for pid in result.scalars()}
