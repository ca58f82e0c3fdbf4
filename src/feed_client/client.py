"""Paginated feed delivery with single-flight fetching and fallback."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum

import structlog

from feed_client.cache import ResponseCache, normalize_key
from feed_client.config import ClientSettings, get_client_settings
from feed_client.transport import FeedItem, FeedRequest, FeedTransport, WirePage
from shared.constants import (
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_CLIENT_TIMEOUT_SECONDS,
    DEFAULT_RECOMMENDATION_LIMIT,
    MAX_CLIENT_RETRIES,
)
from shared.exceptions import RecommendationError, RefreshRequiredError, TransientNetworkError
from shared.metrics import MetricsSink, NullMetricsSink

logger = structlog.get_logger()


class FeedStatus(str, Enum):
    IDLE = "idle"
    LOADING_FIRST = "loading_first"
    LOADING_MORE = "loading_more"
    LOADED = "loaded"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class FeedState:
    """What the consumer renders."""

    items: list[FeedItem] = field(default_factory=list)
    seen_ids: set[str] = field(default_factory=set)
    page: int = 0
    offset: int = 0
    has_more: bool = False
    status: FeedStatus = FeedStatus.IDLE
    error: str | None = None
    error_type: str | None = None
    fallback_used: bool = False
    refresh_required: bool = False

    @property
    def loading(self) -> bool:
        return self.status == FeedStatus.LOADING_FIRST

    @property
    def loading_more(self) -> bool:
        return self.status == FeedStatus.LOADING_MORE


class DeliveryClient:
    """
    Loads one feed page by page.

    At most one request is in flight. Starting a first-page load cancels any
    outstanding request, and a response is applied only if no newer load has
    started since it was issued. Items are deduplicated by product id across
    pages. A failing or empty first page of a fallback-eligible feed is
    replaced, once, by the guest popular feed.
    """

    def __init__(
        self,
        transport: FeedTransport,
        request: FeedRequest | None = None,
        page_size: int = DEFAULT_RECOMMENDATION_LIMIT,
        timeout_seconds: float = DEFAULT_CLIENT_TIMEOUT_SECONDS,
        cache: ResponseCache | None = None,
        max_retries: int = MAX_CLIENT_RETRIES,
        metrics: MetricsSink | None = None,
    ):
        self.transport = transport
        self.request = request
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.cache = cache if cache is not None else ResponseCache(DEFAULT_CACHE_CAPACITY)
        self.max_retries = max_retries
        self.metrics = metrics or NullMetricsSink()

        self.state = FeedState()
        self.retry_count = 0
        self._generation = 0
        self._inflight: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        request: FeedRequest | None = None,
        settings: ClientSettings | None = None,
        metrics: MetricsSink | None = None,
    ) -> "DeliveryClient":
        settings = settings or get_client_settings()
        return cls(
            transport=FeedTransport(settings.base_url),
            request=request,
            page_size=settings.page_size,
            timeout_seconds=settings.timeout_seconds,
            cache=ResponseCache(settings.cache_capacity),
            max_retries=settings.max_retries,
            metrics=metrics,
        )

    async def __aenter__(self) -> "DeliveryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch_first_page(self, request: FeedRequest | None = None) -> FeedState:
        """Reset the feed and load page 1, falling back to popular when eligible."""
        if request is not None:
            self.request = request
        if self.request is None:
            raise ValueError("No feed request configured")

        self._cancel_inflight()
        self._generation += 1
        generation = self._generation
        self.state = FeedState(status=FeedStatus.LOADING_FIRST)
        feed = self.request

        try:
            wire = await self._fetch(feed, 1)
        except RecommendationError as e:
            if generation != self._generation:
                return self.state
            if feed.fallback_eligible:
                return await self._fallback(generation, feed, cause=e)
            return self._fail(e)

        if wire is None or generation != self._generation:
            return self.state

        items = self._unseen(wire.items)
        if not items and feed.fallback_eligible:
            return await self._fallback(generation, feed, cause=None)

        self._apply(wire, items, page=1)
        return self.state

    async def fetch_next_page(self) -> FeedState:
        """Append the next page. No-op while loading or when nothing is left."""
        state = self.state
        if self.request is None or not state.has_more or state.loading or state.loading_more:
            return state

        generation = self._generation
        next_page = state.page + 1
        state.status = FeedStatus.LOADING_MORE
        state.error = None
        state.error_type = None

        try:
            wire = await self._fetch(self.request, next_page)
        except RecommendationError as e:
            if generation != self._generation:
                return self.state
            return self._fail(e)

        if wire is None or generation != self._generation:
            return self.state

        self._apply(wire, self._unseen(wire.items), page=next_page)
        return self.state

    async def retry(self) -> FeedState:
        """
        Re-run the failed load.

        Only acts on a feed in the error state. Allowed ``max_retries`` times
        per session; the next call raises RefreshRequiredError without
        touching the network.
        """
        if self.state.status != FeedStatus.ERROR:
            return self.state
        if self.retry_count >= self.max_retries:
            err = RefreshRequiredError(self.retry_count)
            self.state.status = FeedStatus.ERROR
            self.state.error = err.message
            self.state.error_type = type(err).__name__
            self.state.refresh_required = True
            self.metrics.increment("feed_client.refresh_required")
            logger.warning("Retry budget exhausted", attempts=self.retry_count)
            raise err

        self.retry_count += 1
        self.metrics.increment("feed_client.retry")
        logger.info("Retrying feed load", attempt=self.retry_count)

        if not self.state.items:
            return await self.fetch_first_page()
        self.state.status = FeedStatus.LOADED
        return await self.fetch_next_page()

    async def update_params(self, request: FeedRequest) -> FeedState:
        """Switch feeds: drop old cache entries, reset the session and reload."""
        if self.request is not None:
            dropped = self.cache.invalidate(normalize_key(self.request.endpoint, self.request.params))
            logger.debug("Invalidated cached pages", endpoint=self.request.endpoint, dropped=dropped)
        self.retry_count = 0
        return await self.fetch_first_page(request)

    async def close(self) -> None:
        self._generation += 1
        self._cancel_inflight()
        self.cache.clear()
        await self.transport.aclose()

    async def _fallback(
        self, generation: int, feed: FeedRequest, cause: RecommendationError | None
    ) -> FeedState:
        self.metrics.increment("feed_client.fallback", endpoint=feed.endpoint)
        logger.info(
            "Falling back to popular feed",
            endpoint=feed.endpoint,
            cause=cause.message if cause else "empty",
        )
        try:
            wire = await self._fetch(FeedRequest.popular_fallback(), 1)
        except RecommendationError as e:
            if generation != self._generation:
                return self.state
            return self._fail(cause or e)

        if wire is None or generation != self._generation:
            return self.state

        self.state.fallback_used = True
        self._apply(wire, self._unseen(wire.items), page=1)
        self.state.has_more = False
        return self.state

    async def _fetch(self, feed: FeedRequest, page: int) -> WirePage | None:
        """Fetch a page through the cache. Returns None if superseded."""
        generation = self._generation
        params = feed.page_params(page, self.page_size)
        key = normalize_key(feed.endpoint, params)
        cached = self.cache.get(key)
        if cached is not None:
            self.metrics.increment("feed_client.cache_hit", endpoint=feed.endpoint)
            return cached

        self._cancel_inflight()
        task = asyncio.create_task(
            asyncio.wait_for(self.transport.fetch(feed.endpoint, params), self.timeout_seconds)
        )
        self._inflight = task
        start = time.perf_counter()
        try:
            wire = await task
        except asyncio.CancelledError:
            if self._inflight is task:
                raise
            logger.debug("Discarded superseded request", endpoint=feed.endpoint, page=page)
            return None
        except asyncio.TimeoutError as e:
            self.metrics.increment("feed_client.timeout", endpoint=feed.endpoint)
            raise TransientNetworkError(
                "Request timed out",
                details={"endpoint": feed.endpoint, "timeout_seconds": self.timeout_seconds},
            ) from e
        finally:
            if self._inflight is task:
                self._inflight = None
            self.metrics.observe(
                "feed_client.request", time.perf_counter() - start, endpoint=feed.endpoint
            )

        if generation != self._generation:
            logger.debug("Discarded superseded response", endpoint=feed.endpoint, page=page)
            return None
        self.cache.put(key, wire, scope=normalize_key(feed.endpoint, feed.params))
        return wire

    def _cancel_inflight(self) -> None:
        task, self._inflight = self._inflight, None
        if task is not None and not task.done():
            task.cancel()

    def _unseen(self, items: list[FeedItem]) -> list[FeedItem]:
        fresh: list[FeedItem] = []
        for item in items:
            if item.product_id in self.state.seen_ids:
                continue
            self.state.seen_ids.add(item.product_id)
            fresh.append(item)
        return fresh

    def _apply(self, wire: WirePage, items: list[FeedItem], page: int) -> None:
        state = self.state
        state.items.extend(items)
        state.page = page
        state.offset += len(wire.items)
        if wire.total_pages is not None:
            state.has_more = page < wire.total_pages
        else:
            state.has_more = len(wire.items) >= self.page_size
        state.status = FeedStatus.LOADED if state.items else FeedStatus.EMPTY
        state.error = None
        state.error_type = None
        self.retry_count = 0

    def _fail(self, error: RecommendationError) -> FeedState:
        self.metrics.increment("feed_client.error", error_type=type(error).__name__)
        logger.warning(
            "Feed load failed",
            endpoint=self.request.endpoint if self.request else None,
            error_type=type(error).__name__,
            error=error.message,
        )
        self.state.status = FeedStatus.ERROR
        self.state.error = error.message
        self.state.error_type = type(error).__name__
        return self.state
