"""Fixed-capacity response cache for the delivery client."""

from collections import OrderedDict
from urllib.parse import urlencode

from feed_client.transport import WirePage
from shared.constants import DEFAULT_CACHE_CAPACITY


def normalize_key(endpoint: str, params: dict[str, object]) -> str:
    """Stable key for (endpoint, params): sorted, stringified, empty values dropped."""
    items = sorted((k, str(v)) for k, v in params.items() if v is not None and v != "")
    query = urlencode(items)
    return f"{endpoint}?{query}" if query else endpoint


class ResponseCache:
    """LRU map of page responses, bounded to ``capacity`` entries.

    Every entry carries the scope (endpoint plus non-paging params) of the
    request that produced it, so a parameter change can drop exactly the
    entries of the old request.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, tuple[str, WirePage]] = OrderedDict()

    def get(self, key: str) -> WirePage | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[1]

    def put(self, key: str, page: WirePage, scope: str) -> None:
        self._entries[key] = (scope, page)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def invalidate(self, scope: str) -> int:
        stale = [key for key, (entry_scope, _) in self._entries.items() if entry_scope == scope]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
