"""Unit tests for feed composition."""

from typing import Any

import pytest

from fakes import (
    InMemoryActivityStore,
    InMemoryInterestStore,
    InMemoryOrderStore,
    InMemoryProductStore,
    make_product,
)
from recommendation_engine.config import Settings
from recommendation_engine.services.aggregator import (
    RecommendationAggregator,
    is_authenticated,
    merge_tagged_sources,
)
from recommendation_engine.services.types import (
    FeedKind,
    RecommendationCandidate,
    RecommendationReason,
)
from shared.exceptions import NotFoundError, ValidationError
from shared.metrics import InMemoryMetricsSink

Reason = RecommendationReason


def ids(candidates) -> list[str]:
    return [c.product_id for c in candidates]


def candidate(pid: str, score: float, reason: Reason = Reason.POPULAR) -> RecommendationCandidate:
    return RecommendationCandidate(product_id=pid, score=score, reason=reason)


class DictCache:
    """Stands in for CacheService with a plain dict."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return self.data.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        self.data[key] = value


def test_guest_is_not_authenticated() -> None:
    assert is_authenticated("user-1")
    assert not is_authenticated("guest")
    assert not is_authenticated("")
    assert not is_authenticated(None)


class TestMergeTaggedSources:
    def test_higher_priority_source_keeps_the_product(self) -> None:
        merged = merge_tagged_sources(
            {
                Reason.POPULAR: [candidate("x", 100.0)],
                Reason.SIMILAR: [candidate("x", 1.0, Reason.SIMILAR)],
            }
        )
        assert len(merged) == 1
        assert merged[0].reason == Reason.SIMILAR

    def test_excluded_and_duplicate_ids_are_dropped(self) -> None:
        merged = merge_tagged_sources(
            {
                Reason.TRENDING: [candidate("a", 3.0), candidate("b", 2.0)],
                Reason.POPULAR: [candidate("b", 9.0), candidate("c", 9.0)],
            },
            exclude_ids={"a"},
        )
        assert sorted(ids(merged)) == ["b", "c"]
        assert len(set(ids(merged))) == len(merged)

    def test_scores_are_normalised_and_weighted_per_source(self) -> None:
        merged = merge_tagged_sources(
            {
                Reason.SIMILAR: [candidate("s", 4.0, Reason.SIMILAR)],
                Reason.POPULAR: [candidate("p", 1000.0), candidate("q", 500.0)],
            }
        )
        assert ids(merged) == ["s", "p", "q"]
        assert [c.score for c in merged] == [1.0, 0.7, 0.35]

    def test_zero_scores_do_not_divide_by_zero(self) -> None:
        merged = merge_tagged_sources({Reason.TRENDING: [candidate("t", 0.0)]})
        assert merged[0].score == 0.0


class TestSections:
    @pytest.mark.asyncio
    async def test_authenticated_sections(self, aggregator: RecommendationAggregator) -> None:
        sections = await aggregator.sections("user-1", 5, 2, 5)
        assert ids(sections["personalized"]) == ["p5"]
        assert ids(sections["popular"]) == ["p1", "p2"]
        assert ids(sections["trending"]) == ["p4", "p2"]

    @pytest.mark.asyncio
    async def test_guest_gets_popular_as_personalized(
        self, aggregator: RecommendationAggregator, metrics: InMemoryMetricsSink
    ) -> None:
        sections = await aggregator.sections("guest", 3, 2, 2)
        assert ids(sections["personalized"]) == ["p1", "p2", "p3"]
        assert all(c.reason == Reason.PERSONALIZED for c in sections["personalized"])
        assert all(c.reason == Reason.POPULAR for c in sections["popular"])
        assert metrics.count("recommendations.sections_served") == 1

    @pytest.mark.asyncio
    async def test_rejects_bad_limits(self, aggregator: RecommendationAggregator) -> None:
        with pytest.raises(ValidationError):
            await aggregator.sections("user-1", 0, 5, 5)
        with pytest.raises(ValidationError):
            await aggregator.sections("user-1", 5, 51, 5)


class TestFeeds:
    @pytest.mark.asyncio
    async def test_trending_feed_paginates(self, aggregator: RecommendationAggregator) -> None:
        first = await aggregator.feed("user-1", FeedKind.TRENDING, page=1, limit=1)
        second = await aggregator.feed("user-1", FeedKind.TRENDING, page=2, limit=1)

        assert ids(first.items) == ["p4"]
        assert (first.total, first.total_pages, first.has_more) == (2, 2, True)
        assert ids(second.items) == ["p2"]
        assert second.has_more is False

    @pytest.mark.asyncio
    async def test_popular_feed_counts_active_products(
        self, aggregator: RecommendationAggregator
    ) -> None:
        page = await aggregator.feed("user-1", FeedKind.POPULAR, page=3, limit=2)
        assert ids(page.items) == ["p5"]
        assert (page.total, page.total_pages, page.has_more) == (5, 3, False)

    @pytest.mark.asyncio
    async def test_guest_personalized_feed_is_popular(
        self, aggregator: RecommendationAggregator
    ) -> None:
        page = await aggregator.feed("guest", FeedKind.PERSONALIZED, page=1, limit=2)
        assert ids(page.items) == ["p1", "p2"]
        assert page.total == 5
        assert all(c.reason == Reason.PERSONALIZED for c in page.items)

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, aggregator: RecommendationAggregator) -> None:
        page = await aggregator.feed("user-1", FeedKind.TRENDING, page=5, limit=10)
        assert page.items == []
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_rejects_bad_page(self, aggregator: RecommendationAggregator) -> None:
        with pytest.raises(ValidationError):
            await aggregator.feed("user-1", FeedKind.POPULAR, page=0, limit=10)

    @pytest.mark.asyncio
    async def test_popular_reads_are_cached(
        self, product_store: InMemoryProductStore, aggregator: RecommendationAggregator
    ) -> None:
        aggregator.cache = DictCache()
        first = await aggregator.popular_feed(1, 2)
        product_store.products.pop("p1")
        second = await aggregator.popular_feed(1, 2)

        assert ids(first.items) == ids(second.items) == ["p1", "p2"]
        assert "popular:2:0" in aggregator.cache.data


class TestMixedFeed:
    @pytest.mark.asyncio
    async def test_guest_mixed_feed(self, aggregator: RecommendationAggregator) -> None:
        items = await aggregator.mixed("p1", "guest", limit=4)
        assert ids(items) == ["p2", "p4", "p3"]
        assert [c.reason for c in items] == [Reason.SIMILAR, Reason.TRENDING, Reason.POPULAR]

    @pytest.mark.asyncio
    async def test_signed_in_mixed_feed_includes_personalized(
        self, aggregator: RecommendationAggregator
    ) -> None:
        items = await aggregator.mixed("p1", "user-1", limit=4)
        assert ids(items) == ["p2", "p5", "p4", "p3"]
        assert items[1].reason == Reason.PERSONALIZED

    @pytest.mark.asyncio
    async def test_never_returns_anchor_or_duplicates(
        self, aggregator: RecommendationAggregator
    ) -> None:
        for anchor in ("p1", "p2", "p4"):
            items = await aggregator.mixed(anchor, "user-1", limit=10)
            assert anchor not in ids(items)
            assert len(set(ids(items))) == len(items)

    @pytest.mark.asyncio
    async def test_offset_pages(self, aggregator: RecommendationAggregator) -> None:
        items = await aggregator.mixed("p1", "user-1", limit=2, offset=2)
        assert ids(items) == ["p4", "p3"]

    @pytest.mark.asyncio
    async def test_offset_past_the_end_has_no_fallback(
        self, aggregator: RecommendationAggregator, metrics: InMemoryMetricsSink
    ) -> None:
        assert await aggregator.mixed("p1", "guest", limit=4, offset=40) == []
        assert metrics.count("recommendations.fallback", feed="mixed") == 0

    @pytest.mark.asyncio
    async def test_empty_first_page_falls_back_to_popular(self, test_settings: Settings) -> None:
        metrics = InMemoryMetricsSink()
        aggregator = RecommendationAggregator.from_stores(
            products=InMemoryProductStore(
                [
                    make_product("anchor", "shoes", score=10.0),
                    make_product("other", "bags", score=5.0),
                ]
            ),
            activity=InMemoryActivityStore(),
            interests=InMemoryInterestStore(),
            orders=InMemoryOrderStore(),
            metrics=metrics,
            settings=test_settings,
        )

        items = await aggregator.mixed("anchor", "guest", limit=1)

        assert ids(items) == ["other"]
        assert items[0].reason == Reason.POPULAR
        assert metrics.count("recommendations.fallback", feed="mixed") == 1

    @pytest.mark.asyncio
    async def test_validation(self, aggregator: RecommendationAggregator) -> None:
        with pytest.raises(ValidationError):
            await aggregator.mixed("", "guest", limit=4)
        with pytest.raises(ValidationError):
            await aggregator.mixed("p1", "guest", limit=0)
        with pytest.raises(ValidationError):
            await aggregator.mixed("p1", "guest", limit=4, offset=-1)


class TestSimilar:
    @pytest.mark.asyncio
    async def test_unknown_anchor(self, aggregator: RecommendationAggregator) -> None:
        with pytest.raises(NotFoundError):
            await aggregator.similar("missing", 4)

    @pytest.mark.asyncio
    async def test_similar(self, aggregator: RecommendationAggregator) -> None:
        assert ids(await aggregator.similar("p1", 4)) == ["p2"]
