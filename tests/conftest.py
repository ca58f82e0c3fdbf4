"""Pytest configuration and fixtures."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from fakes import (
    InMemoryActivityStore,
    InMemoryInterestStore,
    InMemoryOrderStore,
    InMemoryProductStore,
    make_product,
)
from recommendation_engine.api.dependencies import (
    get_aggregator,
    get_cache,
    get_popularity_index,
    get_score_queue,
)
from recommendation_engine.config import Settings, get_settings
from recommendation_engine.infrastructure.redis import CacheService, ScoreUpdateQueue
from recommendation_engine.main import create_app
from recommendation_engine.services.aggregator import RecommendationAggregator
from recommendation_engine.services.types import Product, UserInterest
from shared.metrics import InMemoryMetricsSink


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        redis_host="localhost",
        redis_port=6379,
    )


@pytest.fixture
def catalog() -> list[Product]:
    """
    Small storefront catalog.

    p1..p3 are shoes, p4 and p5 bags, p6 an inactive shoe inside p1's price band.
    """
    return [
        make_product("p1", "shoes", 100.0, score=50.0, views=10, carts=2, purchases=1),
        make_product("p2", "shoes", 110.0, score=40.0),
        make_product("p3", "shoes", 200.0, score=30.0),
        make_product("p4", "bags", 90.0, score=20.0),
        make_product("p5", "bags", 95.0, score=10.0, views=4),
        make_product("p6", "shoes", 95.0, score=100.0, active=False),
    ]


@pytest.fixture
def product_store(catalog: list[Product]) -> InMemoryProductStore:
    return InMemoryProductStore(catalog)


@pytest.fixture
def activity_store() -> InMemoryActivityStore:
    store = InMemoryActivityStore()
    store.record("p4", count=5)
    store.record("p2", count=3)
    store.record("p6", count=10)  # inactive
    store.record("p5", count=8, age_days=10)  # outside the window
    return store


@pytest.fixture
def interest_store() -> InMemoryInterestStore:
    return InMemoryInterestStore(
        {"user-1": [UserInterest(user_id="user-1", category_id="bags", affinity_score=250.0)]}
    )


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore({"user-1": {"p4"}})


@pytest.fixture
def metrics() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def aggregator(
    product_store: InMemoryProductStore,
    activity_store: InMemoryActivityStore,
    interest_store: InMemoryInterestStore,
    order_store: InMemoryOrderStore,
    metrics: InMemoryMetricsSink,
    test_settings: Settings,
) -> RecommendationAggregator:
    return RecommendationAggregator.from_stores(
        products=product_store,
        activity=activity_store,
        interests=interest_store,
        orders=order_store,
        cache=None,
        metrics=metrics,
        settings=test_settings,
    )


@pytest.fixture
def app(
    test_settings: Settings,
    aggregator: RecommendationAggregator,
    metrics: InMemoryMetricsSink,
) -> Any:
    """Create test application backed by the in-memory stores."""

    async def get_test_aggregator() -> RecommendationAggregator:
        return aggregator

    async def get_test_cache() -> CacheService:
        return CacheService(None)

    async def get_test_queue() -> ScoreUpdateQueue:
        return ScoreUpdateQueue(None)

    async def get_test_index():
        return aggregator.popularity

    app = create_app(metrics=metrics)
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_aggregator] = get_test_aggregator
    app.dependency_overrides[get_cache] = get_test_cache
    app.dependency_overrides[get_score_queue] = get_test_queue
    app.dependency_overrides[get_popularity_index] = get_test_index
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)
