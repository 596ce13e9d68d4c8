from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable

from bucketcache.entry import add_duration


@dataclass
class _MemoryItem:
    value: bytes
    last_access: datetime
    absolute_expiration: datetime | None = None
    sliding_expiration: timedelta | None = None

    def expired(self, now: datetime) -> bool:
        if self.absolute_expiration is not None and now >= self.absolute_expiration:
            return True
        if self.sliding_expiration is not None and now >= add_duration(self.last_access, self.sliding_expiration):
            return True
        return False


class MemoryCache:
    """Process-local byte store with per-item TTL and optional LRU bound."""

    def __init__(
        self,
        max_size: int | None = 10_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._items: OrderedDict[str, _MemoryItem] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        now = self._clock()
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None

            if item.expired(now):
                self._items.pop(key, None)
                return None

            item.last_access = now
            self._items.move_to_end(key)
            return item.value

    def set(
        self,
        key: str,
        value: bytes,
        *,
        absolute_expiration: datetime | None = None,
        sliding_expiration: timedelta | None = None,
    ) -> None:
        item = _MemoryItem(
            value=bytes(value),
            last_access=self._clock(),
            absolute_expiration=absolute_expiration,
            sliding_expiration=sliding_expiration,
        )
        with self._lock:
            if key in self._items:
                self._items.move_to_end(key)

            self._items[key] = item
            if self.max_size is not None:
                while len(self._items) > self.max_size:
                    self._items.popitem(last=False)

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
