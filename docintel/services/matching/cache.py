"""Short-lived cache of match results keyed by template and document set."""

import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar

from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


def cache_key(template_slug: str, document_ids: Iterable[Any]) -> str:
    """Hash of (template slug, sorted document ids)."""
    ids = sorted(str(doc_id) for doc_id in document_ids)
    payload = json.dumps([template_slug, ids], separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class RelevanceCache(Generic[T]):
    """TTL cache with a size cap; the oldest entries are evicted first."""

    def __init__(self, ttl: float = 900.0, capacity: int = 100, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.capacity = capacity
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[float, T]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at > self.ttl:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: T) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self.clock(), value)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug("Evicted match cache entry", extra={"key": evicted[:12]})

    def clear(self) -> None:
        self._entries.clear()
