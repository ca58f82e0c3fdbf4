"""Popularity scoring.

score = view * W_view + cart_add * W_cart + purchase * W_purchase,
multiplied by RECENCY_BOOST for products created within TRENDING_DAYS.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from recommendation_engine.config import Settings, get_settings
from recommendation_engine.services.types import ProductCounters
from shared.constants import DEFAULT_SCORE_WEIGHTS, RECENCY_BOOST, TRENDING_DAYS

logger = structlog.get_logger()


def _coerce_weight(name: str, value: Any) -> float:
    fallback = DEFAULT_SCORE_WEIGHTS[name]
    if value is None or isinstance(value, bool):
        return fallback
    try:
        weight = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid score weight, using default", weight=name, value=value)
        return fallback
    if not math.isfinite(weight) or weight < 0:
        logger.warning("Invalid score weight, using default", weight=name, value=value)
        return fallback
    return weight


@dataclass(frozen=True)
class ScoreWeights:
    """Validated popularity weights."""

    view: float = DEFAULT_SCORE_WEIGHTS["view"]
    cart_add: float = DEFAULT_SCORE_WEIGHTS["cart_add"]
    purchase: float = DEFAULT_SCORE_WEIGHTS["purchase"]

    @classmethod
    def coerce(cls, view: Any = None, cart_add: Any = None, purchase: Any = None) -> "ScoreWeights":
        """Build weights from untrusted input; each invalid weight uses its default."""
        return cls(
            view=_coerce_weight("view", view),
            cart_add=_coerce_weight("cart_add", cart_add),
            purchase=_coerce_weight("purchase", purchase),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ScoreWeights":
        settings = settings or get_settings()
        return cls.coerce(
            view=settings.reco_weight_view,
            cart_add=settings.reco_weight_cart,
            purchase=settings.reco_weight_order,
        )


def _as_utc(value: datetime) -> datetime:
    # Stores hand back naive timestamps in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_recent(created_at: datetime, now: datetime | None = None) -> bool:
    """Whether a product is young enough for the recency boost."""
    now = _as_utc(now or datetime.now(timezone.utc))
    return now - _as_utc(created_at) <= timedelta(days=TRENDING_DAYS)


def raw_score(counters: ProductCounters | None, weights: ScoreWeights) -> float:
    counters = counters or ProductCounters()
    return (
        (counters.view_count or 0) * weights.view
        + (counters.cart_add_count or 0) * weights.cart_add
        + (counters.purchase_count or 0) * weights.purchase
    )


def calculate_popularity_score(
    counters: ProductCounters | None,
    created_at: datetime,
    weights: ScoreWeights | None = None,
    now: datetime | None = None,
) -> float:
    """
    Calculate the popularity score for a product.

    Args:
        counters: View, cart-add and purchase counters (missing counts are 0)
        created_at: Product creation timestamp
        weights: Validated weights; defaults to the configured weights
        now: Reference time, mainly for tests

    Returns:
        Non-negative popularity score
    """
    weights = weights or ScoreWeights()
    score = raw_score(counters, weights)
    if is_recent(created_at, now):
        return score * RECENCY_BOOST
    return score
