from __future__ import annotations

from typing import Protocol

from prometheus_client import CollectorRegistry, Counter

PROMETHEUS_REGISTRY = CollectorRegistry()


def get_prometheus_registry() -> CollectorRegistry:
    return PROMETHEUS_REGISTRY


class CacheMetricsProtocol(Protocol):
    def outcome(self, *, operation: str, outcome: str) -> None: ...

    def remote_error(self, *, operation: str, error_type: str) -> None: ...


class NoopCacheMetrics:
    def outcome(self, *, operation: str, outcome: str) -> None:
        return None

    def remote_error(self, *, operation: str, error_type: str) -> None:
        return None


class PrometheusCacheMetrics:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        registry = registry or get_prometheus_registry()
        self._operations = Counter(
            "bucketcache_operations_total",
            "Cache operations by outcome",
            ["operation", "outcome"],
            registry=registry,
        )
        self._remote_errors = Counter(
            "bucketcache_remote_errors_total",
            "Object store failures absorbed by the cache",
            ["operation", "error_type"],
            registry=registry,
        )

    def outcome(self, *, operation: str, outcome: str) -> None:
        self._operations.labels(operation=operation, outcome=outcome).inc()

    def remote_error(self, *, operation: str, error_type: str) -> None:
        self._remote_errors.labels(operation=operation, error_type=error_type).inc()
