"""Unit tests for the feed transport and payload parsing."""

import httpx
import pytest

from feed_client.transport import FeedRequest, FeedTransport, parse_payload
from shared.exceptions import TransientNetworkError, UpstreamError


class TestParsePayload:
    def test_paginated_shape(self) -> None:
        page = parse_payload(
            {
                "success": True,
                "data": [{"product_id": "a", "score": 2.5, "reason": "trending"}],
                "pagination": {"page": 2, "limit": 10, "total": 25, "total_pages": 3},
            },
            10,
        )
        assert [i.product_id for i in page.items] == ["a"]
        assert page.items[0].reason == "trending"
        assert (page.page, page.total, page.total_pages) == (2, 25, 3)

    def test_camel_case_total_pages(self) -> None:
        page = parse_payload({"data": [], "pagination": {"page": 1, "totalPages": 4}}, 10)
        assert page.total_pages == 4

    def test_mixed_shape_has_no_pagination(self) -> None:
        page = parse_payload(
            {"success": True, "data": [{"product_id": "a"}, {"product_id": "b"}], "count": 2}, 4
        )
        assert page.total_pages is None
        assert page.limit == 4
        assert len(page.items) == 2

    def test_legacy_products_shape(self) -> None:
        page = parse_payload({"products": [{"product": {"id": "x"}}], "total": 1}, 12)
        assert page.items[0].product_id == "x"
        assert page.items[0].product == {"id": "x"}
        assert page.total == 1

    def test_items_without_ids_are_skipped(self) -> None:
        page = parse_payload({"data": [{"score": 1}, "junk", {"productId": "y"}]}, 12)
        assert [i.product_id for i in page.items] == ["y"]

    @pytest.mark.parametrize(
        "payload",
        [[], "oops", {"success": False, "error": "boom"}, {"data": "not-a-list"}],
    )
    def test_invalid_payloads(self, payload) -> None:
        with pytest.raises(UpstreamError):
            parse_payload(payload, 12)

    @pytest.mark.parametrize(
        "payload",
        [
            {"data": [{"product_id": "a", "score": "n/a"}]},
            {"data": [], "pagination": {"total_pages": "many"}},
            {"data": [], "pagination": {"limit": "ten"}},
            {"data": [], "pagination": "oops"},
        ],
    )
    def test_unconvertible_values_are_upstream_errors(self, payload) -> None:
        with pytest.raises(UpstreamError) as exc_info:
            parse_payload(payload, 12)
        assert exc_info.value.message == "Invalid response format"


class TestFeedRequest:
    def test_page_params(self) -> None:
        request = FeedRequest.section("u1", "trending")
        assert request.page_params(3, 10) == {"page": 3, "limit": 10}
        assert request.fallback_eligible is False

    def test_offset_params(self) -> None:
        request = FeedRequest.mixed("p1", "u1")
        assert request.page_params(3, 4) == {"actor_id": "u1", "offset": 8, "limit": 4}
        assert request.fallback_eligible is True

    def test_personalized_is_fallback_eligible(self) -> None:
        assert FeedRequest.section("u1", "personalized").fallback_eligible is True
        assert FeedRequest.popular_fallback().endpoint == "/recommendations/guest/popular"


class TestFeedTransport:
    @pytest.mark.asyncio
    async def test_builds_url_from_base(self) -> None:
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json={"success": True, "data": [], "count": 0})

        transport = FeedTransport("http://test/api/v1", transport=httpx.MockTransport(handler))
        await transport.fetch("/products/p1/similar", {"limit": 4})
        await transport.aclose()

        assert seen[0].path == "/api/v1/products/p1/similar"
        assert seen[0].params["limit"] == "4"

    @pytest.mark.asyncio
    async def test_http_error_maps_to_upstream(self) -> None:
        transport = FeedTransport(
            "http://test", transport=httpx.MockTransport(lambda r: httpx.Response(503))
        )
        with pytest.raises(UpstreamError) as exc_info:
            await transport.fetch("/x", {"limit": 1})
        assert exc_info.value.details["status"] == 503

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = FeedTransport("http://test", transport=httpx.MockTransport(handler))
        with pytest.raises(TransientNetworkError):
            await transport.fetch("/x", {"limit": 1})

    @pytest.mark.asyncio
    async def test_timeout_maps_to_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        transport = FeedTransport("http://test", transport=httpx.MockTransport(handler))
        with pytest.raises(TransientNetworkError):
            await transport.fetch("/x", {"limit": 1})

    @pytest.mark.asyncio
    async def test_invalid_json_maps_to_upstream(self) -> None:
        transport = FeedTransport(
            "http://test",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"<html>")),
        )
        with pytest.raises(UpstreamError):
            await transport.fetch("/x", {"limit": 1})
