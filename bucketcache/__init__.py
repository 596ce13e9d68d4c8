"""S3-compatible object-store cache with a local fallback."""

from bucketcache.cache import CacheOutcome, CacheResult, ObjectStoreCache, create_cache
from bucketcache.config import DEFAULT_BUCKET_NAME, CacheSettings, build_settings, get_settings, load_settings
from bucketcache.entry import CacheEntry, CacheEntryOptions, deserialize_entry, is_expired, serialize_entry
from bucketcache.exceptions import (
    BucketAlreadyExistsError,
    CacheError,
    ConfigurationError,
    EntryFormatError,
    ObjectNotFoundError,
    TransientRemoteError,
)
from bucketcache.fallback import FallbackCache, FallbackStore
from bucketcache.keys import encode_key
from bucketcache.memory import MemoryCache
from bucketcache.metrics import NoopCacheMetrics, PrometheusCacheMetrics
from bucketcache.storage import ObjectStore, S3ObjectStore, build_s3_client

__version__ = "0.1.0"

__all__ = [
    "BucketAlreadyExistsError",
    "CacheEntry",
    "CacheEntryOptions",
    "CacheError",
    "CacheOutcome",
    "CacheResult",
    "CacheSettings",
    "ConfigurationError",
    "DEFAULT_BUCKET_NAME",
    "EntryFormatError",
    "FallbackCache",
    "FallbackStore",
    "MemoryCache",
    "NoopCacheMetrics",
    "ObjectNotFoundError",
    "ObjectStore",
    "ObjectStoreCache",
    "PrometheusCacheMetrics",
    "S3ObjectStore",
    "TransientRemoteError",
    "build_s3_client",
    "build_settings",
    "create_cache",
    "deserialize_entry",
    "encode_key",
    "get_settings",
    "is_expired",
    "load_settings",
    "serialize_entry",
]
