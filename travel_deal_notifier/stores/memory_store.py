"""In-process key-value store with TTL expiry."""

import copy
import time
from typing import Any, Callable, Dict, List, Optional, Tuple


class MemoryStore:
    """Dict-backed implementation of the key-value store protocol.

    Expired entries are dropped lazily on access. Every operation completes
    without awaiting, so each one is atomic with respect to other coroutines
    on the same event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live(key)
        return copy.deepcopy(entry[0]) if entry else None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        self._data[key] = (copy.deepcopy(value), self._expiry(ttl_seconds))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def incr(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """Increment a counter; the TTL is only set when the key is created."""
        entry = self._live(key)
        if entry is None:
            self._data[key] = (1, self._expiry(ttl_seconds))
            return 1

        value, expires_at = entry
        self._data[key] = (int(value) + 1, expires_at)
        return int(value) + 1

    async def append(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> int:
        """Append to a list, trim to the newest ``max_length`` and refresh TTL."""
        entry = self._live(key)
        items: List[Any] = list(entry[0]) if entry else []
        items.append(copy.deepcopy(value))
        if max_length is not None and len(items) > max_length:
            items = items[-max_length:]
        self._data[key] = (items, self._expiry(ttl_seconds))
        return len(items)

    async def list_range(self, key: str) -> List[Any]:
        entry = self._live(key)
        return copy.deepcopy(list(entry[0])) if entry else []

    async def trim_front(self, key: str, count: int) -> None:
        """Drop the oldest ``count`` list items, deleting the key when empty."""
        entry = self._live(key)
        if entry is None:
            return
        items = list(entry[0])[count:]
        if items:
            self._data[key] = (items, entry[1])
        else:
            del self._data[key]

    async def ttl(self, key: str) -> Optional[float]:
        """Seconds left before ``key`` expires, None when absent or persistent."""
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._clock()
