"""Exceptions raised inside bucketcache.

None of these escape the cache's public get/set/refresh/remove methods; they
travel between the object-store adapter and the engine, which turns them into
misses, fallback reads or log events.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all bucketcache errors."""

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        object_name: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.object_name = object_name
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        msg = self.message
        if self.code:
            msg = f"[{self.code}] {msg}"
        return msg


class TransientRemoteError(CacheError):
    """The object store could not be reached or answered with a server error."""


class ObjectNotFoundError(CacheError):
    """The requested object does not exist."""

    def __init__(self, message: str = "Object not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class EntryFormatError(CacheError):
    """A stored payload could not be decoded into a cache entry."""


class ConfigurationError(CacheError):
    """Settings are invalid or the store rejected our credentials or bucket."""


class BucketAlreadyExistsError(CacheError):
    """Bucket creation raced with another creator."""

    def __init__(self, message: str = "Bucket already exists", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
