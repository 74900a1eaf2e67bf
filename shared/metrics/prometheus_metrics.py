"""Prometheus metrics definitions and helpers.

Provides the metric definitions for the catalog HTTP layer and the
consistency services.
"""

import time
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Iterator

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY,
    CollectorRegistry,
)


class CatalogMetrics:
    """Catalog mutation metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize catalog metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # Mutations accepted
        self.mutations = Counter(
            "catalog_mutations_total",
            "Total number of catalog mutations applied",
            ["entity", "operation"],
            registry=registry,
        )

        # Mutations rejected by validation, lookups or uniqueness
        self.mutations_rejected = Counter(
            "catalog_mutations_rejected_total",
            "Total number of catalog mutations rejected",
            ["entity", "operation", "error_code"],
            registry=registry,
        )

        # Time spent in a service operation, storage round-trips included
        self.operation_duration = Histogram(
            "catalog_operation_duration_seconds",
            "Time spent in catalog service operations",
            ["entity", "operation"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=registry,
        )

    @contextmanager
    def track(self, entity: str, operation: str) -> Iterator[None]:
        """Time a mutation and count it as applied or rejected.

        Exceptions carrying an ``error_code`` attribute are counted under that
        code; anything else is counted as ``internal_error``. The exception is
        always re-raised.

        Args:
            entity: Entity label (author, book)
            operation: Operation label (create, update, ...)
        """
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.mutations_rejected.labels(
                entity=entity,
                operation=operation,
                error_code=getattr(e, "error_code", "internal_error"),
            ).inc()
            raise
        else:
            self.mutations.labels(entity=entity, operation=operation).inc()
        finally:
            self.operation_duration.labels(entity=entity, operation=operation).observe(
                time.perf_counter() - start
            )


class HTTPMetrics:
    """HTTP request metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize HTTP metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=registry,
        )

        self.requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=registry,
        )

        self.db_connections_active = Gauge(
            "database_connections_active",
            "Active database connections",
            registry=registry,
        )

        self.db_connections_idle = Gauge(
            "database_connections_idle",
            "Idle database connections in pool",
            registry=registry,
        )


@lru_cache()
def get_catalog_metrics() -> CatalogMetrics:
    """Return the process-wide catalog metrics, registered once."""
    return CatalogMetrics()


@lru_cache()
def get_http_metrics() -> HTTPMetrics:
    """Return the process-wide HTTP metrics, registered once."""
    return HTTPMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_handler
