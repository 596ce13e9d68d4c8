from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from bucketcache.cache import ObjectStoreCache
from bucketcache.exceptions import ConfigurationError, ObjectNotFoundError
from bucketcache.fallback import FallbackCache
from bucketcache.memory import MemoryCache

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeObjectStore:
    """In-memory object store; set ``fail_with`` to make every call raise."""

    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None
        self.fail_on: set[str] = set()
        self.missing_delete_raises = False
        self.closed = False

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None and (not self.fail_on or operation in self.fail_on):
            raise self.fail_with

    def _bucket(self, bucket: str) -> dict[str, bytes]:
        if bucket not in self.buckets:
            raise ConfigurationError("bucket does not exist", bucket=bucket, code="NoSuchBucket")
        return self.buckets[bucket]

    def put_object(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        self._call("put_object")
        self._bucket(bucket)[name] = bytes(data)
        self.content_types[(bucket, name)] = content_type

    def get_object(self, bucket: str, name: str) -> bytes:
        self._call("get_object")
        objects = self._bucket(bucket)
        if name not in objects:
            raise ObjectNotFoundError(bucket=bucket, object_name=name, code="NoSuchKey")
        return objects[name]

    def delete_object(self, bucket: str, name: str) -> None:
        self._call("delete_object")
        objects = self._bucket(bucket)
        if name not in objects and self.missing_delete_raises:
            raise ObjectNotFoundError(bucket=bucket, object_name=name, code="NoSuchKey")
        objects.pop(name, None)

    def bucket_exists(self, bucket: str) -> bool:
        self._call("bucket_exists")
        return bucket in self.buckets

    def create_bucket(self, bucket: str) -> None:
        self._call("create_bucket")
        self.buckets.setdefault(bucket, {})

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def memory(clock) -> MemoryCache:
    return MemoryCache(max_size=100, clock=clock)


@pytest.fixture
def cache(store, memory, clock) -> ObjectStoreCache:
    return ObjectStoreCache(
        store,
        bucket_name="test-cache",
        fallback=FallbackCache(memory, clock=clock),
        clock=clock,
    )
