"""Distributed cache stored as one object per key in an S3-compatible bucket.

Example:
    ```python
    from datetime import timedelta

    from bucketcache import CacheEntryOptions, build_settings, create_cache

    settings = build_settings(endpoint="localhost:9000", access_key="minio", secret_key="minio123")
    async with create_cache(settings) as cache:
        await cache.set("greeting", b"hello", CacheEntryOptions(sliding_expiration=timedelta(minutes=5)))
        assert await cache.get("greeting") == b"hello"
    ```

No object-store or fallback-store failure is ever raised from ``get``/``set``/``refresh``/``remove``.
Failures are logged, counted, and answered from the local fallback store
where one is configured.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Optional

from bucketcache.config import DEFAULT_BUCKET_NAME, CacheSettings, get_settings
from bucketcache.entry import (
    CONTENT_TYPE,
    CacheEntry,
    CacheEntryOptions,
    deserialize_entry,
    is_expired,
    serialize_entry,
)
from bucketcache.exceptions import BucketAlreadyExistsError, EntryFormatError, ObjectNotFoundError
from bucketcache.fallback import FallbackCache, FallbackStore
from bucketcache.keys import encode_key
from bucketcache.memory import MemoryCache
from bucketcache.metrics import CacheMetricsProtocol, NoopCacheMetrics
from bucketcache.storage import ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)


class CacheOutcome(str, Enum):
    HIT = "hit"
    FALLBACK_HIT = "fallback_hit"
    MISS = "miss"
    EXPIRED = "expired"
    WRITTEN_REMOTE = "written_remote"
    WRITTEN_FALLBACK_ONLY = "written_fallback_only"
    WRITE_FAILED = "write_failed"
    REFRESHED = "refreshed"
    NOT_REFRESHED = "not_refreshed"
    REMOVED = "removed"
    REMOVED_FALLBACK_ONLY = "removed_fallback_only"


@dataclass(frozen=True)
class CacheResult:
    outcome: CacheOutcome
    value: Optional[bytes] = None


class ObjectStoreCache:
    """Cache engine over an :class:`~bucketcache.storage.ObjectStore`.

    The bucket is provisioned lazily on first use and only once per instance;
    a bucket deleted externally afterwards is not recreated.

    Attributes:
        store: Object store adapter
        bucket_name: Bucket holding one object per cache key
        fallback: Local shadow written on every set and read when the store fails
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket_name: str = DEFAULT_BUCKET_NAME,
        fallback: FallbackCache | None = None,
        metrics: CacheMetricsProtocol | None = None,
        clock: Callable[[], datetime] | None = None,
        owns_store: bool = False,
    ) -> None:
        self.store = store
        self.bucket_name = bucket_name
        self.fallback = fallback or FallbackCache(None, enabled=False)
        self.metrics = metrics or NoopCacheMetrics()
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._owns_store = owns_store
        self._bucket_provisioned = False
        self._bucket_lock = threading.Lock()
        self._bucket_attempt: threading.Event | None = None
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        *,
        store: ObjectStore | None = None,
        fallback_store: FallbackStore | None = None,
        metrics: CacheMetricsProtocol | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> "ObjectStoreCache":
        owns_store = store is None
        if store is None:
            store = S3ObjectStore.from_settings(settings)
        if fallback_store is None and settings.use_fallback_cache:
            fallback_store = MemoryCache(max_size=settings.fallback_max_size, clock=clock)

        cache = cls(
            store,
            bucket_name=settings.bucket_name,
            fallback=FallbackCache(fallback_store, enabled=settings.use_fallback_cache, clock=clock),
            metrics=metrics,
            clock=clock,
            owns_store=owns_store,
        )
        logger.info(
            "object store cache initialized",
            extra={
                "endpoint": settings.endpoint,
                "bucket": settings.bucket_name,
                "use_tls": settings.use_tls,
                "region": settings.region or "not specified",
                "fallback_enabled": cache.fallback.enabled,
            },
        )
        return cache

    @property
    def bucket_provisioned(self) -> bool:
        return self._bucket_provisioned

    def ensure_bucket(self) -> bool:
        """Make sure the bucket exists; never raises.

        Concurrent callers share a single in-flight check instead of queueing
        their own, and a failed check is retried by the next operation.

        Returns:
            True once the bucket is known to exist
        """
        if self._bucket_provisioned:
            return True

        with self._bucket_lock:
            if self._bucket_provisioned:
                return True
            attempt = self._bucket_attempt
            leading = attempt is None
            if leading:
                attempt = self._bucket_attempt = threading.Event()

        if not leading:
            attempt.wait()
            return self._bucket_provisioned

        try:
            if not self.store.bucket_exists(self.bucket_name):
                try:
                    self.store.create_bucket(self.bucket_name)
                    logger.info("created cache bucket", extra={"bucket": self.bucket_name})
                except BucketAlreadyExistsError:
                    logger.debug("cache bucket created concurrently", extra={"bucket": self.bucket_name})
            self._bucket_provisioned = True
        except Exception as exc:
            logger.warning(
                "failed to ensure cache bucket exists",
                extra={"bucket": self.bucket_name, "error": str(exc)},
            )
            self.metrics.remote_error(operation="ensure_bucket", error_type=type(exc).__name__)
        finally:
            with self._bucket_lock:
                self._bucket_attempt = None
            attempt.set()
        return self._bucket_provisioned

    def get_with_result(self, key: str) -> CacheResult:
        object_name = self._object_name(key)
        self.ensure_bucket()

        try:
            entry = self._fetch_entry(object_name)
        except ObjectNotFoundError:
            return self._record("get", self._read_fallback(key))
        except EntryFormatError as exc:
            logger.warning("discarding unreadable cache entry", extra={"cache_key": key, "error": str(exc)})
            self.metrics.remote_error(operation="get", error_type=type(exc).__name__)
            self._discard(object_name)
            return self._record("get", self._read_fallback(key))
        except Exception as exc:
            logger.warning(
                "object store get failed, using fallback",
                extra={"cache_key": key, "bucket": self.bucket_name, "error": str(exc)},
            )
            self.metrics.remote_error(operation="get", error_type=type(exc).__name__)
            return self._record("get", self._read_fallback(key))

        if is_expired(entry, self._clock()):
            self.remove_with_result(key)
            return self._record("get", CacheResult(CacheOutcome.EXPIRED))

        return self._record("get", CacheResult(CacheOutcome.HIT, entry.value))

    def set_with_result(
        self,
        key: str,
        value: bytes,
        options: CacheEntryOptions | None = None,
    ) -> CacheResult:
        object_name = self._object_name(key)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"cache value must be bytes, not {type(value).__name__}")
        self.ensure_bucket()

        now = self._clock()
        entry = CacheEntry.create(value, options, now)
        payload = serialize_entry(entry)

        try:
            self.store.put_object(self.bucket_name, object_name, payload, CONTENT_TYPE)
            outcome = CacheOutcome.WRITTEN_REMOTE
        except Exception as exc:
            logger.warning(
                "object store set failed, using fallback only",
                extra={"cache_key": key, "bucket": self.bucket_name, "error": str(exc)},
            )
            self.metrics.remote_error(operation="set", error_type=type(exc).__name__)
            outcome = CacheOutcome.WRITTEN_FALLBACK_ONLY if self.fallback.enabled else CacheOutcome.WRITE_FAILED

        try:
            self.fallback.set(key, entry.value, options, now=now)
        except Exception as exc:
            self._fallback_failed("set", key, exc)
            if outcome is CacheOutcome.WRITTEN_FALLBACK_ONLY:
                outcome = CacheOutcome.WRITE_FAILED
        return self._record("set", CacheResult(outcome))

    def refresh_with_result(self, key: str) -> CacheResult:
        object_name = self._object_name(key)
        self.ensure_bucket()

        try:
            entry = self._fetch_entry(object_name)
        except ObjectNotFoundError:
            return self._record("refresh", CacheResult(CacheOutcome.NOT_REFRESHED))
        except EntryFormatError as exc:
            logger.warning("discarding unreadable cache entry", extra={"cache_key": key, "error": str(exc)})
            self.metrics.remote_error(operation="refresh", error_type=type(exc).__name__)
            self._discard(object_name)
            return self._record("refresh", CacheResult(CacheOutcome.NOT_REFRESHED))
        except Exception as exc:
            logger.warning("object store refresh failed", extra={"cache_key": key, "error": str(exc)})
            self.metrics.remote_error(operation="refresh", error_type=type(exc).__name__)
            return self._record("refresh", CacheResult(CacheOutcome.NOT_REFRESHED))

        now = self._clock()
        if is_expired(entry, now):
            self.remove_with_result(key)
            return self._record("refresh", CacheResult(CacheOutcome.EXPIRED))

        try:
            self.store.put_object(self.bucket_name, object_name, serialize_entry(entry.touch(now)), CONTENT_TYPE)
        except Exception as exc:
            logger.warning("object store refresh failed", extra={"cache_key": key, "error": str(exc)})
            self.metrics.remote_error(operation="refresh", error_type=type(exc).__name__)
            return self._record("refresh", CacheResult(CacheOutcome.NOT_REFRESHED))
        return self._record("refresh", CacheResult(CacheOutcome.REFRESHED))

    def remove_with_result(self, key: str) -> CacheResult:
        object_name = self._object_name(key)
        self.ensure_bucket()

        try:
            self.store.delete_object(self.bucket_name, object_name)
            outcome = CacheOutcome.REMOVED
        except ObjectNotFoundError:
            outcome = CacheOutcome.REMOVED
        except Exception as exc:
            logger.warning("object store remove failed", extra={"cache_key": key, "error": str(exc)})
            self.metrics.remote_error(operation="remove", error_type=type(exc).__name__)
            outcome = CacheOutcome.REMOVED_FALLBACK_ONLY

        try:
            self.fallback.remove(key)
        except Exception as exc:
            self._fallback_failed("remove", key, exc)
        return self._record("remove", CacheResult(outcome))

    def get_sync(self, key: str) -> bytes | None:
        return self.get_with_result(key).value

    def set_sync(self, key: str, value: bytes, options: CacheEntryOptions | None = None) -> None:
        self.set_with_result(key, value, options)

    def refresh_sync(self, key: str) -> None:
        self.refresh_with_result(key)

    def remove_sync(self, key: str) -> None:
        self.remove_with_result(key)

    # The blocking work runs to completion in its worker thread even if the
    # awaiting task is cancelled, so remote and fallback writes stay paired.
    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self.get_sync, key)

    async def set(self, key: str, value: bytes, options: CacheEntryOptions | None = None) -> None:
        await asyncio.to_thread(self.set_sync, key, value, options)

    async def refresh(self, key: str) -> None:
        await asyncio.to_thread(self.refresh_sync, key)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self.remove_sync, key)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_store:
            self.store.close()

    async def aclose(self) -> None:
        await asyncio.to_thread(self.close)

    def __enter__(self) -> "ObjectStoreCache":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "ObjectStoreCache":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _object_name(self, key: str) -> str:
        if self._closed:
            raise RuntimeError("cache is closed")
        object_name = encode_key(key)
        if not object_name:
            raise ValueError("cache key must not be empty")
        return object_name

    def _fetch_entry(self, object_name: str) -> CacheEntry:
        return deserialize_entry(self.store.get_object(self.bucket_name, object_name))

    def _read_fallback(self, key: str) -> CacheResult:
        try:
            value = self.fallback.get(key)
        except Exception as exc:
            self._fallback_failed("get", key, exc)
            return CacheResult(CacheOutcome.MISS)
        if value is None:
            return CacheResult(CacheOutcome.MISS)
        return CacheResult(CacheOutcome.FALLBACK_HIT, value)

    def _fallback_failed(self, operation: str, key: str, exc: Exception) -> None:
        logger.warning(
            "fallback store %s failed",
            operation,
            extra={"cache_key": key, "error": str(exc)},
        )

    def _discard(self, object_name: str) -> None:
        try:
            self.store.delete_object(self.bucket_name, object_name)
        except Exception as exc:
            logger.debug(
                "could not delete unreadable cache object",
                extra={"object_name": object_name, "error": str(exc)},
            )

    def _record(self, operation: str, result: CacheResult) -> CacheResult:
        self.metrics.outcome(operation=operation, outcome=result.outcome.value)
        return result


def create_cache(
    settings: CacheSettings | None = None,
    *,
    store: ObjectStore | None = None,
    fallback_store: FallbackStore | None = None,
    metrics: CacheMetricsProtocol | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ObjectStoreCache:
    """Wire settings, object store, fallback and metrics into a cache."""
    return ObjectStoreCache.from_settings(
        settings or get_settings(),
        store=store,
        fallback_store=fallback_store,
        metrics=metrics,
        clock=clock,
    )
