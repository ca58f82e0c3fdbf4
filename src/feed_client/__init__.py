"""Async client that delivers recommendation feeds page by page."""

from feed_client.cache import ResponseCache
from feed_client.client import DeliveryClient, FeedState, FeedStatus
from feed_client.transport import FeedItem, FeedRequest, FeedTransport

__all__ = [
    "DeliveryClient",
    "FeedItem",
    "FeedRequest",
    "FeedState",
    "FeedStatus",
    "FeedTransport",
    "ResponseCache",
]
