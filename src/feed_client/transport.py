"""HTTP transport for the recommendation feeds.

Parses the sectioned, mixed and legacy popular payloads into one page shape.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
import structlog

from shared.constants import GUEST_ACTOR_ID
from shared.exceptions import TransientNetworkError, UpstreamError

logger = structlog.get_logger()

FALLBACK_ENDPOINT = "/recommendations/guest/popular"


@dataclass(frozen=True)
class FeedItem:
    """One delivered recommendation."""

    product_id: str
    score: float
    reason: str
    product: dict[str, Any] | None = None


@dataclass(frozen=True)
class WirePage:
    """A parsed server response."""

    items: list[FeedItem]
    limit: int
    page: int | None = None
    total: int | None = None
    total_pages: int | None = None


@dataclass(frozen=True)
class FeedRequest:
    """Which feed to load and with which filters (paging excluded)."""

    endpoint: str
    params: dict[str, str] = field(default_factory=dict)
    paging: Literal["page", "offset"] = "page"
    fallback_eligible: bool = False

    @classmethod
    def section(cls, actor_id: str, kind: str) -> "FeedRequest":
        return cls(
            endpoint=f"/recommendations/{actor_id}/{kind}",
            fallback_eligible=kind == "personalized",
        )

    @classmethod
    def mixed(cls, product_id: str, actor_id: str = GUEST_ACTOR_ID) -> "FeedRequest":
        return cls(
            endpoint=f"/products/{product_id}/mixed-recommendations",
            params={"actor_id": actor_id},
            paging="offset",
            fallback_eligible=True,
        )

    @classmethod
    def similar(cls, product_id: str) -> "FeedRequest":
        return cls(endpoint=f"/products/{product_id}/similar", fallback_eligible=True)

    @classmethod
    def popular_fallback(cls) -> "FeedRequest":
        return cls(endpoint=FALLBACK_ENDPOINT)

    def page_params(self, page: int, limit: int) -> dict[str, object]:
        params: dict[str, object] = dict(self.params)
        if self.paging == "offset":
            params["offset"] = (page - 1) * limit
        else:
            params["page"] = page
        params["limit"] = limit
        return params


def _parse_item(raw: dict[str, Any]) -> FeedItem | None:
    product = raw.get("product") if isinstance(raw.get("product"), dict) else None
    product_id = raw.get("product_id") or raw.get("productId") or (product or {}).get("id")
    if not product_id:
        return None
    return FeedItem(
        product_id=str(product_id),
        score=float(raw.get("score") or 0.0),
        reason=str(raw.get("reason") or "popular"),
        product=product,
    )


def parse_payload(payload: Any, requested_limit: int) -> WirePage:
    """
    Normalise a feed response.

    Accepts ``{data, pagination}``, ``{success, data, count}`` and the legacy
    ``{products, total, pagination}`` shapes. ``totalPages`` and
    ``total_pages`` are both understood.
    """
    if not isinstance(payload, dict):
        raise UpstreamError("Invalid response format", details={"type": type(payload).__name__})
    if payload.get("success") is False:
        raise UpstreamError(
            str(payload.get("error") or "Feed request failed"), details={"payload": payload}
        )

    raw_items = payload.get("data")
    if raw_items is None:
        raw_items = payload.get("products")
    if not isinstance(raw_items, list):
        raise UpstreamError("Invalid response format", details={"keys": sorted(payload)})

    try:
        items = [item for item in (_parse_item(r) for r in raw_items if isinstance(r, dict)) if item]

        pagination = payload.get("pagination") or {}
        total_pages = pagination.get("total_pages", pagination.get("totalPages"))
        total = pagination.get("total", payload.get("total"))
        return WirePage(
            items=items,
            limit=int(pagination.get("limit") or requested_limit),
            page=pagination.get("page"),
            total=int(total) if total is not None else None,
            total_pages=int(total_pages) if total_pages is not None else None,
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise UpstreamError("Invalid response format", details={"error": str(e)}) from e


class FeedTransport:
    """Thin async HTTP layer over ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def fetch(self, endpoint: str, params: dict[str, object]) -> WirePage:
        """GET one page. Raises TransientNetworkError or UpstreamError."""
        limit = int(params.get("limit") or 0)
        try:
            response = await self.client.get(endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise TransientNetworkError("Request timed out", details={"endpoint": endpoint}) from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Failed to load recommendations: {e.response.status_code}",
                details={"endpoint": endpoint, "status": e.response.status_code},
            ) from e
        except httpx.TransportError as e:
            raise TransientNetworkError(
                "Network error", details={"endpoint": endpoint, "error": str(e)}
            ) from e
        except ValueError as e:
            raise UpstreamError("Invalid response format", details={"endpoint": endpoint}) from e

        page = parse_payload(payload, limit)
        logger.debug("Feed page received", endpoint=endpoint, items=len(page.items))
        return page

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
