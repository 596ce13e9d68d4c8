from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Callable, Protocol

from bucketcache.entry import CacheEntryOptions


class FallbackStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(
        self,
        key: str,
        value: bytes,
        *,
        absolute_expiration: datetime | None = None,
        sliding_expiration: timedelta | None = None,
    ) -> None: ...

    def remove(self, key: str) -> None: ...


class _DisabledStore:
    def get(self, key: str) -> bytes | None:
        return None

    def set(
        self,
        key: str,
        value: bytes,
        *,
        absolute_expiration: datetime | None = None,
        sliding_expiration: timedelta | None = None,
    ) -> None:
        return None

    def remove(self, key: str) -> None:
        return None


class FallbackCache:
    """Local shadow of the remote cache, keyed by the logical cache key."""

    def __init__(
        self,
        store: FallbackStore | None,
        enabled: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.enabled = bool(enabled and store is not None)
        self._store: FallbackStore = store if self.enabled else _DisabledStore()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def get(self, key: str) -> bytes | None:
        return self._store.get(key)

    def set(
        self,
        key: str,
        value: bytes,
        options: CacheEntryOptions | None = None,
        *,
        now: datetime | None = None,
    ) -> None:
        options = options or CacheEntryOptions()
        self._store.set(
            key,
            value,
            absolute_expiration=options.resolve_absolute_expiration(now or self._clock()),
            sliding_expiration=options.sliding_expiration,
        )

    def remove(self, key: str) -> None:
        self._store.remove(key)
