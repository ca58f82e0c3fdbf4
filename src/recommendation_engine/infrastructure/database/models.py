"""SQLAlchemy models for the storefront tables the recommender reads.

The catalog, order, activity and interest tables are owned by the storefront;
the recommender only reads them and writes back ``products.popularity_score``.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Catalog
# =============================================================================


class ProductRow(Base):
    """Storefront product with behavioral counters and the cached score."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    category_id: Mapped[Optional[str]] = mapped_column(String(255))
    base_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    view_count: Mapped[int] = mapped_column(Integer, default=0)
    cart_add_count: Mapped[int] = mapped_column(Integer, default=0)
    purchase_count: Mapped[int] = mapped_column(Integer, default=0)

    # Derived from the counters; rewritten only by score recompute
    popularity_score: Mapped[float] = mapped_column(Float, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("products_popularity_idx", "popularity_score"),
        Index("products_category_idx", "category_id"),
    )


# =============================================================================
# Behavior
# =============================================================================


class UserActivityRow(Base):
    """Append-only activity log (views, cart adds, purchases)."""

    __tablename__ = "user_activities"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255))
    session_id: Mapped[Optional[str]] = mapped_column(String(255))
    product_id: Mapped[Optional[str]] = mapped_column(ForeignKey("products.id"))
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("user_activities_product_idx", "product_id"),
        Index("user_activities_created_at_idx", "created_at"),
    )


class UserInterestRow(Base):
    """Category affinity maintained by the behavioral pipeline."""

    __tablename__ = "user_interests"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[str] = mapped_column(String(255), nullable=False)
    score: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), default=1)

    __table_args__ = (Index("user_interests_user_category_idx", "user_id", "category_id"),)


# =============================================================================
# Orders
# =============================================================================


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
